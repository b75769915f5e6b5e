"""!
@brief Allow ``python -m chef_wrapper``.
"""
from __future__ import annotations

import sys

from .main import main

sys.exit(main())

# This file makes the 'models' directory a Python package.

from .user import User

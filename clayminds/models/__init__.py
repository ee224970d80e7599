# clayminds/models/__init__.py
from clayminds.models.local_state import LocalState

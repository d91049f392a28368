# importing the sub-command modules registers their commands
from . import main
from . import install_cli
from . import manage_store_cli

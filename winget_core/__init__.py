"""
Core helpers driving the winget CLI, shared by every front end.
"""

from .errors import WingetCommandError, WingetError  # noqa: F401
from .install_location import InstallLocationResolver  # noqa: F401
from .output_phase import OperationPhase, PhaseSignal, PhaseTracker, classify_line  # noqa: F401
from .process_runner import CommandResult, run_capture, run_streaming  # noqa: F401
from .session import OperationSession  # noqa: F401
from .table_parser import TableRow, parse_table  # noqa: F401
from .uninstall_store import InstallRecord, RegistryUninstallStore, UninstallRoot  # noqa: F401
from .winget_service import Availability, WingetService  # noqa: F401

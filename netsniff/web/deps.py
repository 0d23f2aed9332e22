import os
from pathlib import Path

from fastapi.templating import Jinja2Templates

from netsniff.config import DEFAULT_SOCKET_PATH, REQUEST_TIMEOUT
from netsniff.ipc.client import ControlClient

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def get_client() -> ControlClient:
    return ControlClient(
        os.environ.get("NETSNIFF_SOCKET") or DEFAULT_SOCKET_PATH,
        timeout=REQUEST_TIMEOUT,
    )

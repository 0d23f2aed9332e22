import os

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from netsniff.errors import DaemonError, TransportError
from netsniff.ipc.client import ControlClient
from netsniff.web.deps import get_client, templates

router = APIRouter()


class InterfaceSelection(BaseModel):
    name: str


def _call(fn, *args):
    """Run one client call, turning daemon/transport failures into HTTP errors."""
    try:
        return fn(*args)
    except DaemonError as exc:
        raise HTTPException(status_code=409, detail={"errno": exc.errno, "error": os.strerror(exc.errno)})
    except TransportError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _tables_to_json(tables):
    return [
        {
            "entries": [{"ip": str(e.ip), "count": e.count} for e in table],
            "packets": sum(e.count for e in table),
        }
        for table in tables
    ]


@router.get("/", response_class=HTMLResponse)
def index(request: Request, client: ControlClient = Depends(get_client)):
    error = None
    try:
        tables = client.stat()
    except (DaemonError, TransportError) as exc:
        tables = []
        error = str(exc)

    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "tables": _tables_to_json(tables),
            "error": error,
        },
    )


@router.get("/api/stat")
def api_stat(iface: str = "", client: ControlClient = Depends(get_client)):
    tables = _call(client.stat, iface or None)
    return {"interface": iface or None, "tables": _tables_to_json(tables)}


@router.get("/api/ip/{ip}")
def api_ip_count(ip: str, client: ControlClient = Depends(get_client)):
    return {"ip": ip, "count": _call(client.ip_count, ip)}


@router.post("/api/start")
def api_start(client: ControlClient = Depends(get_client)):
    _call(client.start)
    return {"status": "running"}


@router.post("/api/stop")
def api_stop(client: ControlClient = Depends(get_client)):
    _call(client.stop)
    return {"status": "stopped"}


@router.post("/api/iface")
def api_select_iface(selection: InterfaceSelection, client: ControlClient = Depends(get_client)):
    _call(client.set_interface, selection.name)
    return {"interface": selection.name}

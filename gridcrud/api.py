import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Path, Request
from fastapi.responses import HTMLResponse, Response
from starlette.concurrency import run_in_threadpool

from .grid import Grid
from .protocol import EditSessionProtocol, ProtocolResult
from .schema import require_identifier
from .templating import render_template

GridFactory = Callable[[Request], Grid]

STATIC_URL = "/static/gridcrud"


class GridRegistry:
    """
    Maps grid names to factories that build a configured Grid per request.

    Factories run on every request, so configuration is reapplied and the
    table re-introspected each time; nothing is shared between requests.
    """

    def __init__(self):
        self._factories: Dict[str, GridFactory] = {}
        self._titles: Dict[str, str] = {}

    def register(self, name: str, factory: GridFactory, title: Optional[str] = None) -> None:
        require_identifier(name, "grid name")
        if name in self._factories:
            logging.warning(f"Replacing registered grid '{name}'")
        self._factories[name] = factory
        self._titles[name] = title or name

    def names(self) -> List[str]:
        return sorted(self._factories)

    def title(self, name: str) -> str:
        return self._titles.get(name, name)

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def create(self, name: str, request: Request) -> Grid:
        """
        Build the named grid for a request.

        Raises:
            KeyError: If no grid is registered under the name
        """
        grid = self._factories[name](request)
        if not grid.ajax_url:
            grid.set_ajax_url(f"/grids/{name}/ajax")
        return grid


async def request_params(request: Request) -> Dict[str, Any]:
    """Query string parameters merged with form fields for POST requests."""
    params: Dict[str, Any] = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        for key, value in form.items():
            if isinstance(value, str):
                params[key] = value
    return params


def create_grid_routes(registry: GridRegistry) -> APIRouter:
    """
    Creates and returns the grid router, wiring up the page and edit
    protocol endpoints to the registered grids.
    """
    router = APIRouter(prefix="/grids")

    def build(name: str, request: Request) -> Grid:
        if name not in registry:
            raise HTTPException(status_code=404, detail=f"No grid named: {name}")
        return registry.create(name, request)

    @router.get("/")
    def list_grids() -> Dict[str, Any]:
        """Returns the names of all registered grids."""
        return {"grids": [{"name": name, "title": registry.title(name)} for name in registry.names()]}

    @router.get("/{grid_name}", response_class=HTMLResponse)
    async def show_grid(request: Request, grid_name: str = Path(..., title="The name of the grid")):
        """
        Returns a full HTML page with the rendered grid and the client script.
        """
        params = await request_params(request)

        def render_page() -> str:
            grid = build(grid_name, request)
            return render_template(
                "page.html",
                title=registry.title(grid_name),
                grid_html=grid.render(params),
                static_url=STATIC_URL,
            )

        return HTMLResponse(await run_in_threadpool(render_page))

    @router.api_route("/{grid_name}/ajax", methods=["GET", "POST"])
    async def grid_protocol(request: Request, grid_name: str = Path(..., title="The name of the grid")):
        """
        The edit protocol endpoint. Writes answer pipe-delimited text and
        refresh actions answer the re-rendered table fragment.
        """
        params = await request_params(request)

        def handle() -> ProtocolResult:
            return EditSessionProtocol(build(grid_name, request)).handle(params)

        result = await run_in_threadpool(handle)
        return Response(content=result.to_wire(), media_type=result.media_type)

    return router

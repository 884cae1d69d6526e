from fastapi import APIRouter, Depends, HTTPException, status

from planboard.dependencies import get_dashboard_repository, get_widget_data_resolver
from planboard.modules.dashboards.application.builder import DashboardBuilderSession
from planboard.modules.dashboards.domain.document import DashboardDocument
from planboard.modules.dashboards.domain.layout import COLUMNS
from planboard.modules.dashboards.domain.models import NEW_DASHBOARD_ID, Dashboard
from planboard.modules.dashboards.domain.ports import DashboardRepository
from planboard.modules.dashboards.domain.templates import from_template, list_templates
from planboard.modules.widgets.application.data_resolver import WidgetDataResolver
from planboard.modules.widgets.domain.config import (
    WidgetConfigValidationError,
    parse_static_data,
    validate_widget,
)
from planboard.schemas import (
    DashboardFromTemplateRequest,
    DashboardRenderRequest,
    DashboardRenderResponse,
    RenderedWidgetResponse,
    StaticDataParseRequest,
    StaticDataParseResponse,
    WidgetDataRequest,
    WidgetDataResponse,
)

router = APIRouter(prefix="/dashboards", tags=["dashboards"])


def _validate_widgets(dashboard: Dashboard) -> None:
    for widget in dashboard.widgets:
        try:
            validate_widget(widget)
        except WidgetConfigValidationError as exc:
            detail = exc.to_detail()
            detail["widget_id"] = widget.id
            raise HTTPException(status_code=400, detail=detail)


@router.get("", response_model=list[Dashboard])
async def list_dashboards(
    owner_id: str | None = None,
    repository: DashboardRepository = Depends(get_dashboard_repository),
):
    return repository.list(owner_id=owner_id)


@router.get("/templates", response_model=list[Dashboard])
async def list_dashboard_templates():
    return list_templates()


@router.post("/templates/{template_id}", response_model=Dashboard, status_code=status.HTTP_201_CREATED)
async def create_dashboard_from_template(
    template_id: str,
    request: DashboardFromTemplateRequest,
    repository: DashboardRepository = Depends(get_dashboard_repository),
):
    try:
        dashboard = from_template(template_id, owner_id=request.owner_id, name=request.name)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return repository.save(dashboard)


@router.post("/widget-data", response_model=WidgetDataResponse)
async def resolve_widget_data(
    request: WidgetDataRequest,
    resolver: WidgetDataResolver = Depends(get_widget_data_resolver),
):
    try:
        validate_widget(request.widget)
    except WidgetConfigValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.to_detail())

    resolution = await resolver.resolve(request.widget, request.filters)
    return WidgetDataResponse.from_resolution(resolution)


@router.post("/static-data/parse", response_model=StaticDataParseResponse)
async def parse_widget_static_data(request: StaticDataParseRequest):
    rows = parse_static_data(request.raw)
    return StaticDataParseResponse(rows=rows, row_count=len(rows))


@router.get("/{dashboard_id}", response_model=Dashboard)
async def get_dashboard(
    dashboard_id: str,
    repository: DashboardRepository = Depends(get_dashboard_repository),
):
    return repository.load(dashboard_id)


@router.post("", response_model=Dashboard, status_code=status.HTTP_201_CREATED)
async def create_dashboard(
    request: Dashboard,
    repository: DashboardRepository = Depends(get_dashboard_repository),
):
    _validate_widgets(request)
    return repository.save(request.model_copy(update={"id": NEW_DASHBOARD_ID}))


@router.put("/{dashboard_id}", response_model=Dashboard)
async def replace_dashboard(
    dashboard_id: str,
    request: Dashboard,
    repository: DashboardRepository = Depends(get_dashboard_repository),
):
    existing = repository.load(dashboard_id)
    _validate_widgets(request)
    return repository.save(request.model_copy(update={"id": existing.id, "created_at": existing.created_at}))


@router.delete("/{dashboard_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dashboard(
    dashboard_id: str,
    repository: DashboardRepository = Depends(get_dashboard_repository),
):
    repository.delete(dashboard_id)


@router.post("/{dashboard_id}/render", response_model=DashboardRenderResponse)
async def render_dashboard(
    dashboard_id: str,
    request: DashboardRenderRequest,
    repository: DashboardRepository = Depends(get_dashboard_repository),
    resolver: WidgetDataResolver = Depends(get_widget_data_resolver),
):
    layout_breakpoint = request.resolved_breakpoint()
    if layout_breakpoint not in COLUMNS:
        raise HTTPException(status_code=400, detail=f"Unknown breakpoint '{layout_breakpoint}'")

    dashboard = repository.load(dashboard_id)
    document = DashboardDocument(dashboard, breakpoint=layout_breakpoint, read_only=True)
    session = DashboardBuilderSession(document, repository=repository, resolver=resolver, read_only=True)
    for filter_id, value in request.filters.items():
        session.change_filter_value(filter_id, value)

    layout = document.compute_layout()
    await session.refresh()
    return DashboardRenderResponse(
        dashboard_id=dashboard.id,
        visible_count=session.visible_count,
        active_filter_count=session.filter_bar.active_count,
        layout=layout,
        widgets=[RenderedWidgetResponse.from_rendered(item) for item in session.render()],
    )

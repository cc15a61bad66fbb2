import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

import typer
from typing_extensions import Annotated

from . import __version__
from .api_client import AgcoAtsError, ApiClient, DataApiAuth, ServicesApiAuth
from .config import ConfigStore, DATA_FAMILY, SERVICES_FAMILY
from .formatting import (
    console,
    print_error,
    print_json,
    print_success,
    render_brands,
    render_config,
    render_detail,
    render_list,
    render_payload,
    spinner,
)
from .models import (
    EQUIPMENT_COLUMNS,
    EQUIPMENT_DETAIL,
    FIELD_COLUMNS,
    FIELD_DETAIL,
    READING_COLUMNS,
    READING_DETAIL,
    SENSOR_COLUMNS,
    SENSOR_DETAIL,
    SECRET_CONFIG_KEYS,
)
from .resources import (
    DEFAULT_AREA_UNIT,
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_READINGS_LIMIT,
    DataApi,
    extract_token,
    ServicesApi,
)

logger = logging.getLogger(__name__)

app = typer.Typer(help="AGCO ATS CLI - Aftermarket technical services from your terminal", add_completion=False)
config_app = typer.Typer(help="Manage CLI configuration")
engine_app = typer.Typer(help="Engine information commands")
equipment_app = typer.Typer(help="Manage equipment")
fields_app = typer.Typer(help="Manage fields")
sensors_app = typer.Typer(help="Sensors and their readings")

app.add_typer(config_app, name="config")
app.add_typer(engine_app, name="engine")
app.add_typer(equipment_app, name="equipment")
app.add_typer(fields_app, name="fields")
app.add_typer(sensors_app, name="sensors")

JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


@dataclass
class CliState:
    """Per-invocation services shared by all commands."""
    store: ConfigStore

    def data_api(self) -> DataApi:
        return DataApi(ApiClient(self.store, DataApiAuth()))

    def services_api(self) -> ServicesApi:
        return ServicesApi(ApiClient(self.store, ServicesApiAuth()), self.store)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit."),
    ] = None,
):
    """
    AGCO ATS CLI - Aftermarket technical services from your terminal.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled.")
    if ctx.obj is None:
        ctx.obj = CliState(store=ConfigStore())
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


# --- Helpers ---

def require_auth(state: CliState, family: str = DATA_FAMILY) -> None:
    """Exits with guidance when the command family has no usable credential."""
    if state.store.is_configured(family):
        return
    if family == SERVICES_FAMILY:
        print_error("Authentication token not configured.")
        console.print("\nRun the following to authenticate:")
        console.print("[cyan]  agcoats auth <username> <password>[/cyan]")
    else:
        print_error("AGCO ATS credentials not configured.")
        console.print("\nRun one of the following:")
        console.print("[cyan]  agcoats config set --api-key <key>[/cyan]")
        console.print("[cyan]  agcoats config set --token <token>[/cyan]")
    raise typer.Exit(code=1)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Reports any failure as an error line and exits with status 1."""
    try:
        yield
    except typer.Exit:
        raise
    except AgcoAtsError as e:
        logger.debug(f"{type(e).__name__} (status {e.status_code}): {e}")
        print_error(str(e))
        raise typer.Exit(code=1)
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print_error(f"An unexpected error occurred: {e}")
        raise typer.Exit(code=1)


def _require_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        print_error("Nothing to update. Pass at least one option to change.")
        raise typer.Exit(code=1)
    return updates


# --- config ---

@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: Annotated[Optional[str], typer.Argument(help="Configuration key (e.g. apiKey, baseUrl)")] = None,
    value: Annotated[Optional[str], typer.Argument(help="Value for KEY")] = None,
    api_key: Annotated[Optional[str], typer.Option("--api-key", help="Set the API key")] = None,
    token: Annotated[Optional[str], typer.Option("--token", help="Set the authentication token")] = None,
    base_url: Annotated[Optional[str], typer.Option("--base-url", help="Set the data API base URL")] = None,
    services_url: Annotated[Optional[str], typer.Option("--services-url", help="Set the services API base URL")] = None,
):
    """Set configuration values."""
    updates: Dict[str, Any] = {
        "apiKey": api_key,
        "token": token,
        "baseUrl": base_url,
        "servicesUrl": services_url,
    }
    if key is not None:
        if value is None:
            print_error(f"Missing value for '{key}'. Usage: agcoats config set KEY VALUE")
            raise typer.Exit(code=1)
        updates[key] = value
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        print_error("Nothing to set. Pass KEY VALUE or one of --api-key, --token, --base-url, --services-url.")
        raise typer.Exit(code=1)

    with handle_errors():
        _state(ctx).store.update(updates)
    print_success("Configuration updated")


@config_app.command("get")
def config_get(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Configuration key to read")],
):
    """Print a single configuration value."""
    value = _state(ctx).store.get(key)
    if value is None:
        print_error(f"'{key}' is not set.")
        raise typer.Exit(code=1)
    typer.echo(value if isinstance(value, str) else json.dumps(value))


@config_app.command("list")
def config_list(ctx: typer.Context, json_output: JsonOption = False):
    """List all configuration values (secrets masked unless --json)."""
    config = _state(ctx).store.get()
    if json_output:
        print_json(config)
    else:
        render_config(config)


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Show current configuration."""
    store = _state(ctx).store
    config = store.get()

    def status(key: str) -> str:
        return "[green]✓ Set[/green]" if config.get(key) else "[red]✗ Not set[/red]"

    console.print("\n[bold]Current configuration:[/bold]")
    console.print(f"  API key: {status('apiKey')}")
    console.print(f"  Token: {status('token')}")
    console.print(f"  Base URL: {config.get('baseUrl')}")
    console.print(f"  Services URL: {config.get('servicesUrl')}")
    console.print(f"  Config file: {store.path}")
    extra = sorted(k for k in config if k not in SECRET_CONFIG_KEYS | {"baseUrl", "servicesUrl"})
    if extra:
        console.print(f"  Other keys: {', '.join(extra)}")


# --- auth / hello ---

@app.command("auth")
def auth(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="Username")],
    password: Annotated[str, typer.Argument(help="Password")],
    json_output: JsonOption = False,
):
    """Authenticate and store token."""
    with handle_errors():
        with spinner("Authenticating..."):
            data = _state(ctx).services_api().authenticate(username, password)

    if extract_token(data):
        print_success("Authentication successful, token saved")
    else:
        console.print("[yellow]Authentication response did not include a token. Nothing was saved.[/yellow]")
    if json_output:
        print_json(data)


@app.command("hello")
def hello(ctx: typer.Context, json_output: JsonOption = False):
    """Check connectivity to AGCO services."""
    with handle_errors():
        with spinner("Checking connectivity..."):
            data = _state(ctx).services_api().check_connectivity()

    if json_output:
        print_json(data)
        return
    print_success("Connected to AGCO ATS services")
    if data is not None:
        typer.echo(data if isinstance(data, str) else json.dumps(data, indent=2))


# --- engine / certificates / brands / user ---

@engine_app.command("iqa")
def engine_iqa(
    ctx: typer.Context,
    serial: Annotated[str, typer.Argument(help="Engine serial number")],
    json_output: JsonOption = False,
):
    """Get IQA codes for an engine."""
    state = _state(ctx)
    require_auth(state, SERVICES_FAMILY)
    with handle_errors():
        with spinner(f"Fetching IQA codes for {serial}..."):
            data = state.services_api().get_engine_iqa_codes(serial)
    if json_output:
        print_json(data)
    else:
        render_payload(data, f"IQA Codes for {serial}:")


@engine_app.command("production")
def engine_production(
    ctx: typer.Context,
    serial: Annotated[str, typer.Argument(help="Engine serial number")],
    json_output: JsonOption = False,
):
    """Get production data for an engine."""
    state = _state(ctx)
    require_auth(state, SERVICES_FAMILY)
    with handle_errors():
        with spinner(f"Fetching production data for {serial}..."):
            data = state.services_api().get_engine_production_data(serial)
    if json_output:
        print_json(data)
    else:
        render_payload(data, f"Production Data for {serial}:")


@app.command("certificates")
def certificates(ctx: typer.Context, json_output: JsonOption = False):
    """Get available certificates."""
    state = _state(ctx)
    require_auth(state, SERVICES_FAMILY)
    with handle_errors():
        with spinner("Fetching certificates..."):
            data = state.services_api().get_certificates()
    if json_output:
        print_json(data)
    else:
        render_payload(data, "Certificates:")


@app.command("brands")
def brands(ctx: typer.Context, json_output: JsonOption = False):
    """Get list of brands."""
    state = _state(ctx)
    require_auth(state, SERVICES_FAMILY)
    with handle_errors():
        with spinner("Fetching brands..."):
            data = state.services_api().get_brands()
    if json_output:
        print_json(data)
    else:
        render_brands(data)


@app.command("user")
def user(ctx: typer.Context, json_output: JsonOption = False):
    """Get current user information."""
    state = _state(ctx)
    require_auth(state, SERVICES_FAMILY)
    with handle_errors():
        with spinner("Fetching user info..."):
            data = state.services_api().get_current_user()
    if json_output:
        print_json(data)
    else:
        render_payload(data, "Current User:")


# --- equipment ---

@equipment_app.command("list")
def equipment_list(
    ctx: typer.Context,
    page: Annotated[int, typer.Option("--page", min=1, help="Page number")] = DEFAULT_PAGE,
    page_size: Annotated[int, typer.Option("--page-size", min=1, help="Items per page")] = DEFAULT_PAGE_SIZE,
    equipment_type: Annotated[Optional[str], typer.Option("--type", help="Filter by equipment type")] = None,
    status: Annotated[Optional[str], typer.Option("--status", help="Filter by status")] = None,
    json_output: JsonOption = False,
):
    """List equipment."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner("Fetching equipment..."):
            items = state.data_api().list_equipment(
                page=page, page_size=page_size, equipment_type=equipment_type, status=status
            )
    if json_output:
        print_json(items)
    else:
        render_list(items, EQUIPMENT_COLUMNS, "equipment", title="Equipment")


@equipment_app.command("get")
def equipment_get(
    ctx: typer.Context,
    equipment_id: Annotated[str, typer.Argument(help="Equipment ID")],
    json_output: JsonOption = False,
):
    """Get equipment details."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner(f"Fetching equipment {equipment_id}..."):
            data = state.data_api().get_equipment(equipment_id)
    if json_output:
        print_json(data)
    else:
        render_detail(data, EQUIPMENT_DETAIL, title="Equipment Details")


@equipment_app.command("register")
def equipment_register(
    ctx: typer.Context,
    serial_number: Annotated[str, typer.Option("--serial-number", help="Serial number")],
    model: Annotated[str, typer.Option("--model", help="Model")],
    equipment_type: Annotated[str, typer.Option("--type", help="Equipment type (e.g. tractor, combine)")],
    manufacturer_date: Annotated[Optional[str], typer.Option("--manufacturer-date", help="Manufacture date (YYYY-MM-DD)")] = None,
    owner_id: Annotated[Optional[str], typer.Option("--owner-id", help="Owner ID")] = None,
    json_output: JsonOption = False,
):
    """Register new equipment."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner("Registering equipment..."):
            data = state.data_api().register_equipment(
                serial_number=serial_number,
                model=model,
                equipment_type=equipment_type,
                manufacturer_date=manufacturer_date,
                owner_id=owner_id,
            )
    if json_output:
        print_json(data)
        return
    print_success("Equipment registered")
    render_detail(data, EQUIPMENT_DETAIL)


@equipment_app.command("update")
def equipment_update(
    ctx: typer.Context,
    equipment_id: Annotated[str, typer.Argument(help="Equipment ID")],
    status: Annotated[Optional[str], typer.Option("--status", help="New status")] = None,
    model: Annotated[Optional[str], typer.Option("--model", help="New model")] = None,
    owner_id: Annotated[Optional[str], typer.Option("--owner-id", help="New owner ID")] = None,
    json_output: JsonOption = False,
):
    """Update equipment."""
    state = _state(ctx)
    require_auth(state)
    updates = _require_updates({"status": status, "model": model, "ownerId": owner_id})
    with handle_errors():
        with spinner(f"Updating equipment {equipment_id}..."):
            data = state.data_api().update_equipment(equipment_id, updates)
    if json_output:
        print_json(data)
        return
    print_success("Equipment updated")
    render_detail(data, EQUIPMENT_DETAIL)


# --- fields ---

@fields_app.command("list")
def fields_list(
    ctx: typer.Context,
    page: Annotated[int, typer.Option("--page", min=1, help="Page number")] = DEFAULT_PAGE,
    page_size: Annotated[int, typer.Option("--page-size", min=1, help="Items per page")] = DEFAULT_PAGE_SIZE,
    farm_id: Annotated[Optional[str], typer.Option("--farm-id", help="Filter by farm ID")] = None,
    json_output: JsonOption = False,
):
    """List fields."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner("Fetching fields..."):
            items = state.data_api().list_fields(page=page, page_size=page_size, farm_id=farm_id)
    if json_output:
        print_json(items)
    else:
        render_list(items, FIELD_COLUMNS, "fields", title="Fields")


@fields_app.command("get")
def fields_get(
    ctx: typer.Context,
    field_id: Annotated[str, typer.Argument(help="Field ID")],
    json_output: JsonOption = False,
):
    """Get field details."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner(f"Fetching field {field_id}..."):
            data = state.data_api().get_field(field_id)
    if json_output:
        print_json(data)
    else:
        render_detail(data, FIELD_DETAIL, title="Field Details")


def _parse_boundaries(value: Optional[str]) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"must be valid JSON ({e})", param_hint="--boundaries")


@fields_app.command("create")
def fields_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", help="Field name")],
    area: Annotated[float, typer.Option("--area", help="Field area")],
    area_unit: Annotated[str, typer.Option("--area-unit", help="Area unit")] = DEFAULT_AREA_UNIT,
    farm_id: Annotated[Optional[str], typer.Option("--farm-id", help="Farm ID")] = None,
    crop_type: Annotated[Optional[str], typer.Option("--crop-type", help="Crop type")] = None,
    boundaries: Annotated[Optional[str], typer.Option("--boundaries", help="Boundaries as a JSON document (e.g. GeoJSON)")] = None,
    json_output: JsonOption = False,
):
    """Create a field."""
    state = _state(ctx)
    require_auth(state)
    parsed_boundaries = _parse_boundaries(boundaries)
    with handle_errors():
        with spinner("Creating field..."):
            data = state.data_api().create_field(
                name=name,
                area=area,
                area_unit=area_unit,
                farm_id=farm_id,
                boundaries=parsed_boundaries,
                crop_type=crop_type,
            )
    if json_output:
        print_json(data)
        return
    print_success("Field created")
    render_detail(data, FIELD_DETAIL)


@fields_app.command("update")
def fields_update(
    ctx: typer.Context,
    field_id: Annotated[str, typer.Argument(help="Field ID")],
    name: Annotated[Optional[str], typer.Option("--name", help="New name")] = None,
    area: Annotated[Optional[float], typer.Option("--area", help="New area")] = None,
    area_unit: Annotated[Optional[str], typer.Option("--area-unit", help="New area unit")] = None,
    crop_type: Annotated[Optional[str], typer.Option("--crop-type", help="New crop type")] = None,
    json_output: JsonOption = False,
):
    """Update a field."""
    state = _state(ctx)
    require_auth(state)
    updates = _require_updates({"name": name, "area": area, "areaUnit": area_unit, "cropType": crop_type})
    with handle_errors():
        with spinner(f"Updating field {field_id}..."):
            data = state.data_api().update_field(field_id, updates)
    if json_output:
        print_json(data)
        return
    print_success("Field updated")
    render_detail(data, FIELD_DETAIL)


# --- sensors ---

@sensors_app.command("list")
def sensors_list(
    ctx: typer.Context,
    page: Annotated[int, typer.Option("--page", min=1, help="Page number")] = DEFAULT_PAGE,
    page_size: Annotated[int, typer.Option("--page-size", min=1, help="Items per page")] = DEFAULT_PAGE_SIZE,
    equipment_id: Annotated[Optional[str], typer.Option("--equipment-id", help="Filter by equipment ID")] = None,
    field_id: Annotated[Optional[str], typer.Option("--field-id", help="Filter by field ID")] = None,
    sensor_type: Annotated[Optional[str], typer.Option("--type", help="Filter by sensor type")] = None,
    json_output: JsonOption = False,
):
    """List sensors."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner("Fetching sensors..."):
            items = state.data_api().list_sensors(
                page=page,
                page_size=page_size,
                equipment_id=equipment_id,
                field_id=field_id,
                sensor_type=sensor_type,
            )
    if json_output:
        print_json(items)
    else:
        render_list(items, SENSOR_COLUMNS, "sensors", title="Sensors")


@sensors_app.command("get")
def sensors_get(
    ctx: typer.Context,
    sensor_id: Annotated[str, typer.Argument(help="Sensor ID")],
    json_output: JsonOption = False,
):
    """Get sensor details."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner(f"Fetching sensor {sensor_id}..."):
            data = state.data_api().get_sensor(sensor_id)
    if json_output:
        print_json(data)
    else:
        render_detail(data, SENSOR_DETAIL, title="Sensor Details")


@sensors_app.command("readings")
def sensors_readings(
    ctx: typer.Context,
    sensor_id: Annotated[str, typer.Argument(help="Sensor ID")],
    start_date: Annotated[Optional[str], typer.Option("--start-date", help="Start date (ISO 8601)")] = None,
    end_date: Annotated[Optional[str], typer.Option("--end-date", help="End date (ISO 8601)")] = None,
    limit: Annotated[int, typer.Option("--limit", min=1, help="Maximum number of readings")] = DEFAULT_READINGS_LIMIT,
    json_output: JsonOption = False,
):
    """Get readings for a sensor."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner(f"Fetching readings for sensor {sensor_id}..."):
            items = state.data_api().get_sensor_readings(
                sensor_id, start_date=start_date, end_date=end_date, limit=limit
            )
    if json_output:
        print_json(items)
    else:
        render_list(items, READING_COLUMNS, "readings", title=f"Readings for {sensor_id}")


@sensors_app.command("latest")
def sensors_latest(
    ctx: typer.Context,
    sensor_id: Annotated[str, typer.Argument(help="Sensor ID")],
    json_output: JsonOption = False,
):
    """Get the latest reading of a sensor."""
    state = _state(ctx)
    require_auth(state)
    with handle_errors():
        with spinner(f"Fetching latest reading for sensor {sensor_id}..."):
            data = state.data_api().get_latest_reading(sensor_id)
    if json_output:
        print_json(data)
    else:
        render_detail(data, READING_DETAIL, title="Latest Reading")

from collections import Counter

from flask import Blueprint, current_app, g, jsonify, request

from .config import FIELD_ALIASES, MACHINES
from .errors import KPIServiceError
from .models import KPIResponse, MachineDebugResponse, MachineNameCount
from .services.kpi_service import PeriodFilter, get_kpis
from .services.parsing import get_field
from .validators import to_optional_int, validate_period

api_blueprint = Blueprint('api', __name__)

CACHE_CONTROL = 'public, s-maxage=300, stale-while-revalidate=60'


def _error(code: str, message: str, status: int):
    g.error_code = code
    return jsonify({"error": {"code": code, "message": message}}), status


@api_blueprint.route('/kpis', methods=['GET'])
def kpis():
    """Per-machine KPIs, fleet summary and trend for an optional year/month."""
    year = request.args.get('year')
    month = request.args.get('month')

    is_valid, error = validate_period(year, month)
    if not is_valid:
        return _error("BAD_REQUEST", error, 400)

    period = PeriodFilter(year=to_optional_int(year), month=to_optional_int(month))

    try:
        snapshot = current_app.extensions['record_cache'].get_or_refresh()
        report = get_kpis(snapshot.work_orders, snapshot.usage, period, MACHINES)
        payload = KPIResponse.from_report(report)
    except KPIServiceError as e:
        current_app.logger.error(f"KPI query failed ({e.code}): {e}")
        return _error(e.code, str(e), e.status_code)
    except Exception as e:
        current_app.logger.exception("An unexpected error occurred while computing KPIs.")
        return _error("INTERNAL_SERVER_ERROR", f"An unexpected error occurred: {str(e)}", 500)

    response = jsonify(payload.model_dump())
    response.headers['Cache-Control'] = CACHE_CONTROL
    return response


@api_blueprint.route('/debug/machines', methods=['GET'])
def debug_machines():
    """
    Work order counts per exact machine name, with each name's code points.

    Used to spot names that look right but fail exact matching (trailing
    non-breaking spaces, look-alike characters).
    """
    try:
        rows = current_app.extensions['appsheet_client'].fetch_all_rows()
    except KPIServiceError as e:
        current_app.logger.error(f"Machine diagnostics failed ({e.code}): {e}")
        return _error(e.code, str(e), e.status_code)

    counts = Counter(
        str(get_field(row, FIELD_ALIASES['machine'], '(sin nombre)')).strip()
        for row in rows
    )
    payload = MachineDebugResponse(
        total=len(rows),
        machines=[
            MachineNameCount(name=name, count=count, codepoints=[ord(ch) for ch in name])
            for name, count in counts.most_common()
        ]
    )
    return jsonify(payload.model_dump())

# /ddns-updater/ddns_updater/app.py
import os
import logging

from flask import Blueprint, Flask, current_app, flash, get_flashed_messages, jsonify, redirect, render_template, request, url_for

from .log import record_log_path
from .providers import get_supported_providers
from .utils import format_local_time

MAX_LOG_LINES = 200

module_logger = logging.getLogger("ddns_updater.app")

routes = Blueprint('ddns', __name__)


def _store():
    return current_app.config['DDNS_STORE']


def _runner():
    return current_app.config['DDNS_RUNNER']


def _record_to_dict(snapshot):
    settings = snapshot.settings
    tz_name = settings.get('timezone', current_app.config['DDNS_TIMEZONE'])
    return {
        'id': settings.record_id,
        'section': settings.section_name,
        'domain': settings.domain,
        'host': settings.host,
        'fqdn': settings.fqdn,
        'provider': settings.provider,
        'ip_version': settings.ip_version.value,
        'status': snapshot.status.value,
        'status_display': snapshot.status.display(),
        'current_ip': snapshot.current_ip or '',
        'previous_ips': snapshot.previous_ips(),
        'last_update': snapshot.last_update_time.isoformat() if snapshot.last_update_time else None,
        'last_update_local': format_local_time(snapshot.last_update_time, tz_name),
        'message': snapshot.message,
        'history_length': len(snapshot.history),
    }


def get_flash_message(category):
    messages = get_flashed_messages(category_filter=[category])
    return messages[0] if messages else None


@routes.route("/")
def index():
    records = [_record_to_dict(snapshot) for snapshot in _store().all()]
    return render_template("index.html",
                           all_records=records,
                           providers=get_supported_providers(),
                           runner_state=_runner().state.value,
                           message=get_flash_message('success'),
                           error=get_flash_message('error'))


@routes.route("/api")
def api_get_status():
    records = {}
    for snapshot in _store().all():
        record = _record_to_dict(snapshot)
        records[record['id']] = record

    filter_id = request.args.get('id')
    filter_domain = request.args.get('domain')

    if filter_id:
        if filter_id in records:
            return jsonify(records[filter_id])
        return jsonify({"error": f"Record with id '{filter_id}' not found"}), 404
    if filter_domain:
        found = {record_id: record for record_id, record in records.items()
                 if filter_domain in (record['domain'], record['fqdn'])}
        if not found:
            return jsonify({"error": f"Record with domain '{filter_domain}' not found"}), 404
        if len(found) == 1:
            return jsonify(next(iter(found.values())))
        return jsonify(found)
    return jsonify(records)


@routes.route("/api/providers")
def api_providers():
    return jsonify(get_supported_providers())


def _wants_refresh():
    return request.values.get('refresh', '').lower() in ('1', 'true', 'yes')


@routes.route("/api/update", methods=["POST"])
def api_force_update():
    accepted = _runner().force_update(refresh=_wants_refresh())
    return jsonify({"accepted": accepted, "state": _runner().state.value}), 202


@routes.route("/update", methods=["GET", "POST"])
def run_update():
    refresh = _wants_refresh()
    if _runner().force_update(refresh=refresh):
        module_logger.info(f"Forced update requested via UI (refresh={refresh})")
        flash("Update cycle requested.", "success")
    elif _runner().stop_requested:
        flash("Updater is shutting down.", "error")
    else:
        flash("An update cycle is already pending.", "success")
    return redirect(url_for('ddns.index'))


@routes.route("/get_log")
def get_log():
    record_section = request.args.get("record_section")
    if not record_section:
        return jsonify({"error": "No record section specified"}), 400
    if os.sep in record_section or record_section.startswith('.'):
        return jsonify({"error": "Invalid record section"}), 400

    log_dir_base = current_app.config['DDNS_LOG_DIR']
    nick = current_app.config['DDNS_NICK']
    log_file = record_log_path(log_dir_base, nick, record_section)
    log_dir = os.path.dirname(log_file)

    if not os.path.exists(log_file):
        prefix = f"DDNS_Log_{record_section}_"
        candidates = sorted(
            (f for f in os.listdir(log_dir) if f.startswith(prefix) and f.endswith(".log")),
            reverse=True) if os.path.isdir(log_dir) else []
        if not candidates:
            return jsonify({"log_content": f"No logs found for record [{record_section}]."})
        log_file = os.path.join(log_dir, candidates[0])

    try:
        with open(log_file, "r", encoding='utf-8') as f:
            lines = f.readlines()
    except OSError as e:
        current_app.logger.error(f"Error reading log file {log_file}: {e}")
        return jsonify({"error": f"Error reading log file: {e}"}), 500

    header = f"Displaying {os.path.basename(log_file)}"
    if len(lines) > MAX_LOG_LINES:
        header += f" (last {MAX_LOG_LINES} lines)"
    return jsonify({"log_content": header + "\n\n" + "".join(lines[-MAX_LOG_LINES:])})


def create_app(store, runner, global_settings=None, log_dir_base='logs') -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get('FLASK_SECRET_KEY') or os.urandom(24)
    app.config['DDNS_STORE'] = store
    app.config['DDNS_RUNNER'] = runner
    app.config['DDNS_LOG_DIR'] = log_dir_base
    app.config['DDNS_NICK'] = global_settings.nick if global_settings else 'default_nick'
    app.config['DDNS_TIMEZONE'] = global_settings.default_timezone if global_settings else 'Etc/UTC'

    root_url = (global_settings.root_url if global_settings else '/').rstrip('/')
    app.register_blueprint(routes, url_prefix=root_url or None)
    return app

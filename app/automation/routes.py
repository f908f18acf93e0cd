"""Module for handling API routes"""

from flask import Blueprint, jsonify, make_response, request

from .config_loader import load_engine_config
from .engine import build_engine
from .exceptions import ContextNotFoundError, ValidationError
from .logging_config import attach_chain_log, setup_logger
from .manager import AutomationManager
from .models import AutomationScenario, GlobalConfig

logger = setup_logger()

automation = Blueprint("automation", __name__)

DEFAULT_CHAIN_ID = 1329


def start_manager(chain_id=None):
    """Build the engine and cycle runner for a chain, defaults to Sei mainnet if none specified"""
    if chain_id is None:
        chain_id = DEFAULT_CHAIN_ID

    config = load_engine_config(chain_id)
    config.validate()
    attach_chain_log(config.LOGS_PATH)
    engine = build_engine(config)
    manager = AutomationManager(engine, config, notify=engine.notify)

    # Store on module level for route access before app context is available
    start_manager._manager = manager

    manager.start()

    return manager


def _get_manager():
    """Get the automation manager instance."""
    return getattr(start_manager, "_manager", None)


def _parse_scenarios(items):
    if not isinstance(items, list):
        raise ValidationError("scenarios must be a list")
    return [AutomationScenario.from_dict(item) for item in items]


@automation.errorhandler(ValidationError)
def handle_validation_error(ex):
    return jsonify({"error": str(ex)}), 400


@automation.errorhandler(ContextNotFoundError)
def handle_context_not_found(ex):
    return jsonify({"error": str(ex)}), 404


@automation.before_request
def require_manager():
    if _get_manager() is None:
        return jsonify({"error": "Automation manager not initialized"}), 500
    return None


@automation.route("/register", methods=["POST"])
def register():
    body = request.get_json(silent=True) or {}
    owner = body.get("owner")
    logger.info("API: Registering %s", owner)

    scenarios = _parse_scenarios(body["scenarios"]) if "scenarios" in body else None
    global_config = GlobalConfig.from_dict(body["global_config"]) if "global_config" in body else None
    chain_id = int(body["chain_id"]) if "chain_id" in body else None

    manager = _get_manager()
    context = manager.engine.register(
        owner, scenarios, global_config, chain_id=chain_id, preferences=body.get("preferences")
    )
    manager.schedule(context.owner)

    return make_response(jsonify(context.to_dict()), 201)


@automation.route("/context/<owner>", methods=["GET"])
def get_context(owner):
    context = _get_manager().engine.get_context(owner)
    if context is None:
        raise ContextNotFoundError(f"No automation context found for {owner}")
    return make_response(jsonify(context.to_dict()))


@automation.route("/scenarios/<owner>", methods=["PUT"])
def update_scenarios(owner):
    body = request.get_json(silent=True) or {}
    scenarios = _parse_scenarios(body.get("scenarios"))

    logger.info("API: Replacing scenarios for %s with %s scenarios", owner, len(scenarios))
    context = _get_manager().engine.update_scenarios(owner, scenarios)
    if context is None:
        raise ContextNotFoundError(f"No automation context found for {owner}")
    return make_response(jsonify(context.to_dict()))


@automation.route("/scenarios/<owner>/custom", methods=["POST"])
def add_custom_scenario(owner):
    body = request.get_json(silent=True) or {}
    scenario = AutomationScenario.from_dict(body)

    logger.info("API: Adding custom scenario %s for %s", scenario.id, owner)
    context = _get_manager().engine.add_scenario(owner, scenario)
    return make_response(jsonify(context.to_dict()), 201)


@automation.route("/execute/<owner>", methods=["POST"])
def execute(owner):
    logger.info("API: Executing automation tasks for %s", owner)
    result = _get_manager().engine.execute_automation_tasks(owner)
    return make_response(jsonify(result.to_dict()))


@automation.route("/performance/<owner>", methods=["GET"])
def get_performance(owner):
    context = _get_manager().engine.get_context(owner)
    if context is None:
        raise ContextNotFoundError(f"No automation context found for {owner}")
    return make_response(jsonify(context.performance_metrics.to_dict()))


@automation.route("/emergency-stop", methods=["POST"])
def emergency_stop():
    owner = (request.get_json(silent=True) or {}).get("owner")
    _get_manager().engine.engage_emergency_stop(owner)
    return make_response(jsonify({"emergency_stop": True, "owner": owner}))


@automation.route("/resume", methods=["POST"])
def resume():
    owner = (request.get_json(silent=True) or {}).get("owner")
    _get_manager().engine.release_emergency_stop(owner)
    return make_response(jsonify({"emergency_stop": False, "owner": owner}))


@automation.route("/context/<owner>", methods=["DELETE"])
def unregister(owner):
    if not _get_manager().engine.unregister(owner):
        raise ContextNotFoundError(f"No automation context found for {owner}")
    return make_response(jsonify({"unregistered": owner}))

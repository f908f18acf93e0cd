"""
Apprise notification functions for the automation engine.
"""

import time

from apprise import Apprise

from .config_loader import EngineConfig
from .logging_config import setup_logger
from .models import ExecutionResult, ScenarioExecutionResult

logger = setup_logger()


def setup_apprise_notification_object(config: EngineConfig) -> Apprise:
    """Set up the Apprise notification engine."""
    apprise = Apprise()
    apprise.add(config.NOTIFICATION_URL)
    return apprise


def _send(config: EngineConfig, title: str, message: str) -> bool:
    if not config.NOTIFICATION_URL:
        logger.debug("Notifications disabled, not sending: %s", title)
        return False

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title=title)


def post_cycle_executed_notification(owner: str, result: ExecutionResult, config: EngineConfig) -> bool:
    """Post a summary of a cycle that produced transactions."""
    executed = [r for r in result.scenario_results if r.executed]
    lines = "\n".join(f"• {r.scenario_name} (p{r.priority}): {r.message}" for r in executed)
    risk = result.risk_assessment.value if result.risk_assessment else "n/a"

    message = (
        ":robot_face: *Automation Cycle Executed* :robot_face:\n\n"
        f"*Owner*: `{owner}`\n"
        f"*Result*: {result.message}\n"
        f"*Transactions*: `{len(result.transactions)}`\n"
        f"*Expected Profit*: `${result.expected_profit:.2f}`\n"
        f"*Gas Estimate*: `{result.gas_estimate}`\n"
        f"*Risk*: `{risk}`\n"
        f"{lines}\n"
        f"Time of execution: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Network: `{config.CHAIN_NAME}`\n"
    )
    logger.info("Cycle executed notification:\n%s", message)

    return _send(config, "Automation Cycle Executed", message)


def post_scenario_failure_notification(owner: str, result: ScenarioExecutionResult, config: EngineConfig) -> bool:
    """Post a notification about a scenario that failed during a cycle."""
    message = (
        ":x: *Automation Scenario Failed* :x:\n\n"
        f"*Owner*: `{owner}`\n"
        f"*Scenario*: `{result.scenario_name}` ({result.scenario_id})\n"
        f"*Priority*: `{result.priority}`\n"
        f"*Error*: {result.message}\n"
        f"Time of failure: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Network: `{config.CHAIN_NAME}`\n"
    )
    logger.info("Scenario failure notification:\n%s", message)

    return _send(config, "Automation Scenario Failed", message)


def post_emergency_stop_notification(owner: str, engaged: bool, config: EngineConfig) -> bool:
    """Post a notification when the emergency stop is engaged or released."""
    state = "Engaged" if engaged else "Released"
    message = (
        f":rotating_light: *Emergency Stop {state}* :rotating_light:\n\n"
        f"*Scope*: `{owner or 'all owners'}`\n"
        f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Network: `{config.CHAIN_NAME}`\n"
    )
    logger.info("Emergency stop notification:\n%s", message)

    return _send(config, f"Emergency Stop {state}", message)


def post_error_notification(message: str, config: EngineConfig) -> bool:
    """Post an error notification."""
    error_message = f":rotating_light: *Error Notification* :rotating_light:\n\n{message}\n\n"
    error_message += f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
    error_message += f"Network: `{config.CHAIN_NAME}`"
    logger.info("Error notification:\n%s", error_message)

    return _send(config, "Error Notification", error_message)

"""
Register tasks from configuration.

Task bodies are supplied by the hosting application keyed by name; the
configuration decides the schedule, whether the task is enabled, and
whether each firing goes through the retry executor.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from cadence.domain.entities import ScheduledTaskHandle
from cadence.domain.errors import InvalidPolicyError
from cadence.domain.retry_value_objects import RetryPolicy
from cadence.infrastructure.config.policy_models import TaskConfig
from cadence.infrastructure.resilience.retry_executor import RetryExecutor
from cadence.infrastructure.scheduling.runner import PeriodicTaskRunner

logger = logging.getLogger(__name__)


def _with_retry(executor: RetryExecutor, body: Callable, policy: RetryPolicy, name: str) -> Callable:
    async def run_with_retry():
        return await executor.execute(body, policy, operation_id=name)
    return run_with_retry


def load_task_configs(raw: Iterable[Mapping[str, Any]]) -> List[TaskConfig]:
    """
    Validate raw task entries.

    Raises:
        InvalidPolicyError: If any entry is invalid (the pydantic error is chained)
    """
    configs = []
    for index, item in enumerate(raw):
        try:
            configs.append(TaskConfig.model_validate(item))
        except ValidationError as exc:
            raise InvalidPolicyError(f"Invalid task configuration at index {index}: {exc}") from exc

    names = [c.name for c in configs]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise InvalidPolicyError(f"Duplicate task names in configuration: {', '.join(duplicates)}")
    return configs


def register_tasks(
    runner: PeriodicTaskRunner,
    configs: Iterable[TaskConfig],
    bodies: Mapping[str, Callable],
    executor: Optional[RetryExecutor] = None,
) -> Dict[str, ScheduledTaskHandle]:
    """
    Schedule every enabled task on the runner.

    Tasks with a retry section run each firing through the retry executor;
    a firing whose retries are exhausted is then reported like any other
    task failure.

    Returns:
        Mapping of task name to its handle
    """
    configs = list(configs)
    missing = [c.name for c in configs if c.enabled and c.name not in bodies]
    if missing:
        raise InvalidPolicyError(f"No task body registered for: {', '.join(missing)}")

    handles: Dict[str, ScheduledTaskHandle] = {}
    for config in configs:
        if not config.enabled:
            logger.info("Task %s disabled by configuration", config.name)
            continue

        body = bodies[config.name]
        if config.retry is not None:
            executor = executor or RetryExecutor()
            body = _with_retry(executor, body, config.retry.to_policy(), config.name)

        handles[config.name] = runner.schedule(body, config.schedule.to_policy(), name=config.name)
    return handles

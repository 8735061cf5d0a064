"""
Module: psnoti/scheduler/manager.py

Defines EventScheduler: starts one task per configured event, watches them, and on the
first failure cancels the rest. Every task is joined before run() returns, and the first
failure (if any) is raised to the caller.
"""
import asyncio

from psnoti.scheduler.task import task_for
from psnoti.utils import log_message

SHUTDOWN = "shutdown"
ISOLATE = "isolate"
POLICIES = (SHUTDOWN, ISOLATE)


class EventScheduler:
    """
    Orchestrates the scheduler tasks of every configured event.

    Responsibilities:
      - Start every event's task before waiting on any of them.
      - Record the first task failure and set the shared cancellation signal.
      - Treat cancellation as a clean exit, never as a failure.
      - Join every task before reporting the final outcome.

    Attributes:
      events (list): RandomEventConfig / CronEventConfig instances.
      context: RunContext shared by every task.
      on_config_error (str): "shutdown" cancels everything on the first failure;
          "isolate" drops only the failing event and fails the run only if every
          event failed.
      tasks (dict): Mapping of event names to asyncio.Task objects.
      failures (dict): Mapping of event names to the exception that ended them.
      first_error: The first recorded failure, or None.
    """
    def __init__(self, events, context, on_config_error=SHUTDOWN, task_factory=task_for):
        """
        Initialize the EventScheduler.

        Args:
            events: Event configurations to run.
            context: The shared RunContext.
            on_config_error (str): Failure policy, "shutdown" or "isolate".
            task_factory: Callable building an EventTask from (event, context).
        """
        if on_config_error not in POLICIES:
            raise ValueError(f"unknown on_config_error policy {on_config_error!r}")
        self.events = list(events)
        self.context = context
        self.on_config_error = on_config_error
        self.task_factory = task_factory
        self.tasks = {}
        self.failures = {}
        self.first_error = None

    async def run(self):
        """
        Run every event until cancellation or failure.

        Raises:
            Exception: The first task failure, once every task has finished.
        """
        if not self.events:
            log_message("No events configured, nothing to schedule", "warning")
            return

        await self.context.open_session()
        try:
            for event in self.events:
                runner = self.task_factory(event, self.context)
                self.tasks[event.name] = asyncio.create_task(
                    self._guard(runner), name=f"psnoti:{event.name}"
                )
            log_message(f"Started {len(self.tasks)} event task(s)", "info")

            try:
                await asyncio.gather(*self.tasks.values())
            except asyncio.CancelledError:
                # The run itself was cancelled; make sure every child has unwound.
                self.context.cancel()
                for task in self.tasks.values():
                    task.cancel()
                await asyncio.gather(*self.tasks.values(), return_exceptions=True)
                raise
        finally:
            # Every task has finished here, so nothing is still using the session
            await self.context.close()

        if self.first_error is not None:
            raise self.first_error

    async def _guard(self, runner):
        """
        Run one task to completion, turning its outcome into scheduler state.

        Never raises except for cancellation of the whole run.
        """
        try:
            await runner.run()
        except asyncio.CancelledError:
            log_message(f"Cancelled task {runner.name}", "warning")
        except Exception as e:
            self._record_failure(runner.name, e)

    def _record_failure(self, name, error):
        self.failures[name] = error
        if self.on_config_error == ISOLATE:
            log_message(f"[{name}] Event stopped and skipped: {error}", "error")
            if len(self.failures) < len(self.events):
                return
        else:
            log_message(f"[{name}] Event failed, stopping all events: {error}", "error")
        if self.first_error is None:
            self.first_error = next(iter(self.failures.values()))
        self.context.cancel()

    async def stop(self):
        """
        Signal every task to stop and wait for them to finish.
        """
        self.context.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks.values(), return_exceptions=True)

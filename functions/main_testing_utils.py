# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""Test doubles and fixtures shared by the unit tests."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from backend.db import InMemoryDbClient
from backend.knocks import KnockRegistry
from backend.push import InMemoryPushGateway
from backend.sessions import InMemorySessionStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class ScheduledTask:
    delay: float
    fn: Callable[..., Any]
    args: tuple

    def run(self) -> None:
        self.fn(*self.args)


class ManualScheduler:
    """Collects deferred tasks; tests fire them explicitly."""

    def __init__(self):
        self.tasks: list[ScheduledTask] = []

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any):
        task = ScheduledTask(delay=delay, fn=fn, args=args)
        self.tasks.append(task)
        return task

    def tasks_named(self, name: str) -> list[ScheduledTask]:
        return [task for task in self.tasks if task.fn.__name__ == name]

    def run_due(self, elapsed: float) -> int:
        """Runs, in deadline order, every task whose delay is <= elapsed."""
        due = sorted(
            (task for task in self.tasks if task.delay <= elapsed),
            key=lambda task: task.delay,
        )
        for task in due:
            self.tasks.remove(task)
            task.run()
        return len(due)

    def run_all(self) -> int:
        return self.run_due(float("inf"))

    def shutdown(self) -> None:
        self.tasks.clear()


def create_mock_group(
    db: InMemoryDbClient,
    members: Dict[str, Optional[str]],
    name: str = "Home",
    address: str = "1.2.3.4",
) -> str:
    """
    Creates a group whose members are the keys of `members`; values are push
    tokens (None leaves the member without a registered device). The first
    member creates the group. Returns the group code.
    """
    identities = list(members)
    group = db.create_group(name, identities[0], address)
    for identity in identities[1:]:
        db.add_member(group.code, identity, address)
    for identity, token in members.items():
        if token:
            db.register_device(identity, token)
    return group.code


def create_test_registry(
    db: Optional[InMemoryDbClient] = None,
    push: Optional[InMemoryPushGateway] = None,
    ttl_seconds: float = 20,
    confirm_delay_seconds: float = 2,
) -> tuple[KnockRegistry, ManualScheduler, FakeClock]:
    scheduler = ManualScheduler()
    clock = FakeClock()
    registry = KnockRegistry(
        db=db if db is not None else InMemoryDbClient(),
        sessions=InMemorySessionStore(),
        push=push if push is not None else InMemoryPushGateway(),
        scheduler=scheduler,
        ttl_seconds=ttl_seconds,
        confirm_delay_seconds=confirm_delay_seconds,
        clock=clock,
    )
    return registry, scheduler, clock

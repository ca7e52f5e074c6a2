import os

# Must be set before timekeeper.config is imported
os.environ.setdefault("BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")
os.environ.setdefault("METRICS_ENABLED", "false")

import pytest

from timekeeper.access import ManagerIndex
from timekeeper.integrations.memory import MemoryBackend
from timekeeper.service import TimesheetService

ORG = "org1"


@pytest.fixture
def backend():
    """
    One organization:
      admin1   admin
      fin1     finance
      sup1     supervisor of staff1 and staff2
      mgr1     manager of project p1 (team t1), member of p2
      staff1   works on p1 and p2
      staff2   works on p1
      staff3   unsupervised
    """
    b = MemoryBackend()
    b.add_user("admin1", ORG, labels=["admin"], firstName="Ada", lastName="Admin")
    b.add_user("fin1", ORG, labels=["finance"], firstName="Fin")
    b.add_user("sup1", ORG, labels=["staff"], firstName="Sue")
    b.add_user("mgr1", ORG, labels=["staff"], firstName="Max")
    b.add_user("staff1", ORG, supervisor_id="sup1", firstName="Sam", lastName="Staff", email="sam@example.com")
    b.add_user("staff2", ORG, supervisor_id="sup1", firstName="Tia")
    b.add_user("staff3", ORG, firstName="Uma")
    b.add_project(
        "p1", ORG, team_id="t1", name="Apollo", code="APL",
        members={"mgr1": ["manager"], "staff1": ["member"], "staff2": ["member"]},
    )
    b.add_project("p2", ORG, team_id="t2", name="Borealis", code="BOR", members={"mgr1": ["member"]})
    return b


@pytest.fixture
def index():
    return ManagerIndex()


@pytest.fixture
def service(backend, index):
    return TimesheetService(backend, index=index, batch_size=2, access_timeout=2.0)

import pytest

from mockprep.infrastructure.data import (
    Identity, PersistenceGateway, StaticIdentityProvider, create_db_engine, init_db
)
from mockprep.interview.models import InterviewOptions, JobContext
from mockprep.interview.testing import FakeScheduler, sample_questions


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    return engine


@pytest.fixture
def identity():
    return Identity(user_id="user-1", email="candidate@example.com")


@pytest.fixture
def gateway(engine, identity):
    return PersistenceGateway(engine, StaticIdentityProvider(identity))


@pytest.fixture
def job():
    return JobContext(job_position="Backend Engineer", job_desc="Python, PostgreSQL", job_experience="4")


@pytest.fixture
def options():
    return InterviewOptions(interview_type="technical", difficulty="senior", question_count=3)


@pytest.fixture
def mock_id(gateway, job, options):
    return gateway.create_interview(job, sample_questions(3), options)


@pytest.fixture
def scheduler():
    return FakeScheduler()

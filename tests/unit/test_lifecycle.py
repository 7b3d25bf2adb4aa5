"""
Unit Tests for job lifecycle rules and secrets

Covers:
1. Forward-only status transitions, terminal states
2. Fail-closed status parsing
3. Secret generation, hashing and authorization
4. API token check
"""

import base64
import hashlib

import pytest

from baktaforge.core.exceptions import AuthenticationError, AuthorizationError, ConsistencyConflict
from baktaforge.core.security import (
    SECRET_BYTES,
    generate_secret,
    hash_secret,
    secret_matches,
    verify_api_token,
)
from baktaforge.models import JobStatus
from baktaforge.orchestration.lifecycle import authorize, check_transition, transition

from tests.conftest import SECRET, make_job

pytestmark = pytest.mark.unit


class TestJobStatus:

    def test_terminal_states(self):
        assert {s for s in JobStatus if s.is_terminal} == {JobStatus.SUCCEEDED, JobStatus.ERROR}

    def test_rank_order(self):
        assert JobStatus.INIT.rank < JobStatus.PENDING.rank < JobStatus.RUNNING.rank
        assert JobStatus.SUCCEEDED.rank == JobStatus.ERROR.rank > JobStatus.RUNNING.rank

    @pytest.mark.parametrize("value", [s.value for s in JobStatus])
    def test_parse_known(self, value):
        assert JobStatus.parse(value).value == value

    @pytest.mark.parametrize("value", ["SUCCESSFULL", "running", "", "DELETED"])
    def test_parse_unknown_fails_closed(self, value):
        """Test: Unknown stored values read as ERROR"""
        assert JobStatus.parse(value) is JobStatus.ERROR

    def test_job_status_property(self):
        assert make_job(status=JobStatus.RUNNING).job_status is JobStatus.RUNNING
        job = make_job()
        job.status = "garbage"
        assert job.job_status is JobStatus.ERROR


class TestTransitions:
    """Tests for check_transition and transition"""

    @pytest.mark.parametrize("current,new", [
        (JobStatus.INIT, JobStatus.PENDING),
        (JobStatus.INIT, JobStatus.RUNNING),
        (JobStatus.PENDING, JobStatus.RUNNING),
        (JobStatus.RUNNING, JobStatus.SUCCEEDED),
        (JobStatus.RUNNING, JobStatus.ERROR),
        (JobStatus.INIT, JobStatus.ERROR),
    ])
    def test_forward_allowed(self, current, new):
        check_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        (JobStatus.RUNNING, JobStatus.INIT),
        (JobStatus.RUNNING, JobStatus.PENDING),
        (JobStatus.PENDING, JobStatus.INIT),
    ])
    def test_backward_rejected(self, current, new):
        with pytest.raises(ConsistencyConflict):
            check_transition(current, new, "job1")

    @pytest.mark.parametrize("terminal", [JobStatus.SUCCEEDED, JobStatus.ERROR])
    @pytest.mark.parametrize("new", list(JobStatus))
    def test_terminal_is_final(self, terminal, new):
        """Test: No write of any kind to a finished job"""
        with pytest.raises(ConsistencyConflict):
            check_transition(terminal, new)

    def test_transition_to_error_sets_message(self):
        job = make_job(status=JobStatus.RUNNING)

        assert transition(job, JobStatus.ERROR, "out of memory") is True

        assert job.job_status is JobStatus.ERROR
        assert job.error_message == "out of memory"

    def test_same_status_is_noop(self):
        job = make_job(status=JobStatus.RUNNING)
        assert transition(job, JobStatus.RUNNING) is False

    def test_transition_from_terminal_raises(self):
        job = make_job(status=JobStatus.SUCCEEDED)
        with pytest.raises(ConsistencyConflict):
            transition(job, JobStatus.ERROR, "late failure")
        assert job.job_status is JobStatus.SUCCEEDED


class TestSecrets:
    """Tests for job capability secrets"""

    def test_secret_length(self):
        assert len(base64.b64decode(generate_secret())) == SECRET_BYTES

    def test_secrets_unique(self):
        assert generate_secret() != generate_secret()

    def test_hash_format(self):
        expected = base64.b64encode(hashlib.sha256(b"abc").digest()).decode()
        assert hash_secret("abc") == expected

    def test_secret_matches(self):
        assert secret_matches("abc", hash_secret("abc"))
        assert not secret_matches("abd", hash_secret("abc"))

    def test_authorize(self):
        authorize(make_job(), SECRET)

    def test_authorize_wrong_secret(self):
        with pytest.raises(AuthorizationError) as exc_info:
            authorize(make_job("job7"), "wrong")
        assert exc_info.value.code == "UNAUTHORIZED"
        assert exc_info.value.details == {"job_id": "job7"}


class TestApiToken:
    """Tests for verify_api_token"""

    def test_disabled_without_expected_token(self):
        verify_api_token(None, None)
        verify_api_token("anything", "")

    @pytest.mark.parametrize("presented", ["token", "Bearer token"])
    def test_accepted(self, presented):
        verify_api_token(presented, "token")

    @pytest.mark.parametrize("presented", [None, "", "Bearer other", "tokenx"])
    def test_rejected(self, presented):
        with pytest.raises(AuthenticationError):
            verify_api_token(presented, "token")

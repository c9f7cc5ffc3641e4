import pytest

from mockprep.errors import GenerationError, NotAuthenticatedError
from mockprep.infrastructure.data import PersistenceGateway, StaticIdentityProvider
from mockprep.infrastructure.speech.voices import Voice
from mockprep.interview.context import SessionContext
from mockprep.interview.engine import QuestionGenerator
from mockprep.interview.services import InterviewSetupService, SpeechOutputService
from mockprep.interview.testing import MockLLMClient, MockSynthesizer


def remote_voices():
    return [Voice(name="en-US-Neural2-D", lang="en-US", gender="male", local_service=False),
            Voice(name="en-US-Neural2-F", lang="en-US", gender="female", local_service=False)]


def test_local_voice_used_when_gender_matches():
    local, remote = MockSynthesizer(), MockSynthesizer(voices=remote_voices())
    output = SpeechOutputService(SessionContext(voice_gender="male"), local=local, remote=remote)
    synthesizer, voice = output.choose()
    assert synthesizer is local
    assert voice.name == "Daniel"


def test_remote_voice_when_local_has_no_match():
    local = MockSynthesizer(voices=[Voice(name="Daniel", lang="en-GB", gender="male")])
    remote = MockSynthesizer(voices=remote_voices())
    output = SpeechOutputService(SessionContext(voice_gender="female"), local=local, remote=remote)
    synthesizer, voice = output.choose()
    assert synthesizer is remote
    assert voice.name == "en-US-Neural2-F"


def test_local_fallback_without_remote():
    local = MockSynthesizer(voices=[Voice(name="Daniel", lang="en-GB", gender="male")])
    output = SpeechOutputService(SessionContext(voice_gender="female"), local=local,
                                 remote=MockSynthesizer(available=False))
    assert output.remote is None
    synthesizer, voice = output.choose()
    assert synthesizer is local
    assert voice.name == "Daniel"


def test_speak_without_any_synthesizer():
    output = SpeechOutputService(SessionContext(), local=MockSynthesizer(available=False))
    assert not output.available
    assert output.choose() == (None, None)
    assert output.speak("Hello", lambda error: None) is False


def test_speak_and_cancel():
    local = MockSynthesizer()
    output = SpeechOutputService(SessionContext(), local=local)
    done = []
    assert output.speak("Tell me about yourself.", done.append)
    assert local.spoken[0][0] == "Tell me about yourself."
    local.finish()
    assert done == [None]
    output.cancel()
    assert local.cancels == 1


def test_voices_loaded_once():
    context = SessionContext()
    local = MockSynthesizer()
    output = SpeechOutputService(context, local=local)
    output.choose()
    local._voices = []
    output.choose()
    assert len(context.local_voices) == 2


QUESTIONS = [{"question": f"Q{i}", "answer": f"A{i}"} for i in range(3)]


def test_setup_requires_sign_in_before_generating(engine, job, options):
    client = MockLLMClient([QUESTIONS])
    gateway = PersistenceGateway(engine, StaticIdentityProvider(None))
    service = InterviewSetupService(QuestionGenerator(client), gateway)
    with pytest.raises(NotAuthenticatedError):
        service.create(job, options)
    assert client.request_history == []


def test_setup_creates_interview(gateway, job, options):
    service = InterviewSetupService(QuestionGenerator(MockLLMClient([QUESTIONS])), gateway)
    mock_id = service.create(job, options)
    interview = gateway.get_interview(mock_id)
    assert [q.question for q in interview.questions] == ["Q0", "Q1", "Q2"]
    assert interview.job.job_position == "Backend Engineer"


def test_setup_generation_failure_creates_nothing(gateway, job, options):
    service = InterviewSetupService(QuestionGenerator(MockLLMClient([[]])), gateway)
    with pytest.raises(GenerationError):
        service.create(job, options)
    assert gateway.list_interviews() == []

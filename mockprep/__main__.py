#!/usr/bin/env python3
"""
Main entry point for the MockPrep interview system.
Allows running the package with: python -m mockprep
"""
import asyncio
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from .config import get_config, INTERVIEW_TYPES, DIFFICULTIES, QUESTION_COUNTS, SUPPORTED_LANGUAGES
from .errors import DocumentError, GenerationError, NotAuthenticatedError
from .infrastructure.data import (
    PersistenceGateway, StaticIdentityProvider, Identity, create_db_engine, init_db
)
from .infrastructure.documents import extract_text_from_pdf
from .infrastructure.llm import VertexRestClient
from .infrastructure.media import PyAudioMicrophone
from .infrastructure.speech import LocalSynthesizer, CloudSynthesizer, GoogleStreamingRecognizer
from .infrastructure.storage import ClipStorage, ClipUploader
from .interview import (
    RecordingOrchestrator, RecorderState, SessionContext, PreferenceStore,
    SpeechCaptureAdapter, SpeechOutputService, MediaCaptureService, InterviewSetupService,
    QuestionGenerator, AnswerScorer, FollowUpGenerator, InterviewEventBus, EventLogger,
    EventType, JobContext, InterviewOptions, build_report, render_text, export_pdf,
    upload_event_reporter
)
from .utils import setup_logging, AsyncioScheduler


def _flag_values() -> Dict[str, str]:
    values = {}
    for arg in sys.argv[1:]:
        if arg.startswith("--") and "=" in arg:
            key, value = arg[2:].split("=", 1)
            values[key] = value
    return values


def _print_event(event) -> None:
    data = event.data
    if event.event_type == EventType.QUESTION_PRESENTED:
        label = "Follow-up" if data["is_follow_up"] else f"Question {data['question_index'] + 1}"
        print(f"\n🤖 {label}: {data['question']}")
    elif event.event_type == EventType.ANSWER_SCORED:
        print(f"📊 Rated {data['rating']}/5")
    elif event.event_type == EventType.FOLLOW_UP_FAILED:
        print("⚠️  No follow-up this time, moving on")
    elif event.event_type == EventType.CAPTURE_STOPPED:
        print(f"🎤 Listening stopped ({data['reason']}), you can keep typing")
    elif event.event_type == EventType.ERROR_OCCURRED:
        print(f"❌ {data['error_message']} (type your answer again or /skip)")
    elif event.event_type == EventType.INTERVIEW_COMPLETED:
        print(f"\n✅ Interview complete: {data['answered_count']} answers, "
              f"{data['follow_up_count']} follow-ups")


async def run_interview(interview, gateway, context, config, use_tts: bool,
                        use_mic: bool = False, mic_device: Optional[int] = None) -> None:
    loop = asyncio.get_running_loop()
    scheduler = AsyncioScheduler(loop)
    llm = VertexRestClient(project=config.google_cloud_project, location=config.vertex_location,
                           model=config.model_name, credentials_json=config.google_application_credentials)

    event_bus = InterviewEventBus()
    event_bus.subscribe_all(EventLogger().handle_event)
    event_bus.subscribe_all(_print_event)

    local = LocalSynthesizer(scheduler, rate_wpm=config.tts_rate_wpm) if use_tts else None
    remote = CloudSynthesizer(scheduler) if use_tts else None
    speech = SpeechOutputService(context, local=local, remote=remote)
    if use_tts and not speech.available:
        print("🔇 No speech engine available, questions will be shown as text")

    microphone = None
    if use_mic:
        microphone = PyAudioMicrophone(device_index=mic_device)
        media = MediaCaptureService(microphone)
        recognizer = GoogleStreamingRecognizer(media.open(), scheduler)
        if not recognizer.available:
            print("🎙️  Speech recognition unavailable, answers will be typed")
        capture = SpeechCaptureAdapter(recognizer, scheduler)
    else:
        # without --mic answers are typed
        capture = SpeechCaptureAdapter(None, scheduler)
        media = MediaCaptureService(lambda constraints: None)
    uploader = ClipUploader(ClipStorage(config.video_bucket), gateway,
                            on_complete=upload_event_reporter(event_bus, interview.mock_id, scheduler))
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scoring")

    orchestrator = RecordingOrchestrator(
        interview,
        scorer=AnswerScorer(llm),
        follow_ups=FollowUpGenerator(llm),
        gateway=gateway,
        speech=speech,
        capture=capture,
        media=media,
        uploader=uploader,
        scheduler=scheduler,
        context=context,
        event_bus=event_bus,
        executor=executor,
    )

    if capture.supported:
        print("🎙️  Speak your answer, then press Enter to submit (or type it instead).")
    print("💬 Type your answer and press Enter. /skip skips a follow-up, /quit ends the interview.")
    orchestrator.start()
    try:
        while orchestrator.state != RecorderState.FINISHED:
            if orchestrator.state not in (RecorderState.CAPTURING, RecorderState.IDLE):
                await asyncio.sleep(0.1)
                continue
            try:
                line = await loop.run_in_executor(None, input, "✍️  ")
            except EOFError:
                line = "/quit"
            line = line.strip()
            if line == "/quit":
                print("👋 Interview stopped")
                break
            if line == "/skip":
                orchestrator.skip_follow_up()
            elif line:
                orchestrator.set_answer_text(line)
                orchestrator.submit_answer()
            elif orchestrator.answer_text:
                print(f"🗣️  {orchestrator.answer_text}")
                orchestrator.submit_answer()
            await asyncio.sleep(0.05)
    finally:
        orchestrator.teardown()
        executor.shutdown(wait=True)
        uploader.wait()
        uploader.shutdown()
        if local is not None:
            local.shutdown()
        if microphone is not None:
            microphone.close()


def show_report(gateway: PersistenceGateway, mock_id: str, pdf_path: Optional[str]) -> None:
    interview = gateway.get_interview(mock_id)
    if interview is None:
        print(f"❌ Interview {mock_id} not found")
        sys.exit(1)
    report = build_report(interview, gateway.list_answers(mock_id))
    print(render_text(report))
    if pdf_path:
        with open(pdf_path, "wb") as f:
            f.write(export_pdf(report))
        print(f"📄 PDF report written to {pdf_path}")


def main():
    """Command-line interface for MockPrep."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    log_file = setup_logging(config.log_file, config.log_level)
    flags = _flag_values()

    # TTS configuration with explicit flags taking precedence
    if "--text" in sys.argv or "--no-tts" in sys.argv:
        use_tts = False
    elif "--tts" in sys.argv:
        use_tts = True
    else:
        use_tts = config.enable_tts

    preferences = PreferenceStore(config.preferences_file)
    language = flags.get("lang")
    voice_gender = flags.get("voice")
    if language is not None and language not in SUPPORTED_LANGUAGES:
        print(f"❌ Unsupported language. Use --lang= one of {', '.join(SUPPORTED_LANGUAGES)}")
        sys.exit(1)
    try:
        if language:
            preferences.set_language(language)
        if voice_gender:
            preferences.set_voice_gender(voice_gender)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)
    context = preferences.session_context()

    engine = create_db_engine(config.database_url)
    init_db(engine)
    identity = Identity(user_id=config.user_email, email=config.user_email) if config.user_email else None
    gateway = PersistenceGateway(engine, StaticIdentityProvider(identity))

    try:
        if "--list" in sys.argv:
            interviews = gateway.list_interviews()
            if not interviews:
                print("📭 No interviews yet")
            for item in interviews:
                created = item.created_at.strftime("%Y-%m-%d %H:%M") if item.created_at else "?"
                print(f"🗂️  {item.mock_id}  {created}  {item.job.job_position} "
                      f"({item.options.interview_type}, {item.options.difficulty}, "
                      f"{len(item.questions)} questions)")
            return

        if "delete" in flags:
            if gateway.delete_interview(flags["delete"]):
                print(f"🗑️  Deleted interview {flags['delete']}")
            else:
                print(f"❌ Interview {flags['delete']} not found")
            return

        if "report" in flags:
            show_report(gateway, flags["report"], flags.get("pdf"))
            return

        if "interview" in flags:
            interview = gateway.get_interview(flags["interview"])
            if interview is None:
                print(f"❌ Interview {flags['interview']} not found")
                sys.exit(1)
        else:
            if "position" not in flags:
                print("❌ Missing --position=<job title> (or --interview=<id>, --report=<id>, --list)")
                sys.exit(1)

            resume_text = None
            if "resume" in flags:
                with open(flags["resume"], "rb") as f:
                    resume_text = extract_text_from_pdf(f.read())
                print(f"📎 Resume loaded ({len(resume_text)} characters)")

            try:
                question_count = int(flags.get("questions", config.question_count))
                options = InterviewOptions(
                    interview_type=flags.get("type", config.interview_type),
                    difficulty=flags.get("difficulty", config.difficulty),
                    question_count=question_count,
                    language=context.language,
                    resume_text=resume_text,
                )
            except ValueError as e:
                print(f"❌ {e}")
                print(f"   Types: {', '.join(INTERVIEW_TYPES)} | Difficulties: {', '.join(DIFFICULTIES)} "
                      f"| Questions: {', '.join(str(c) for c in QUESTION_COUNTS)}")
                sys.exit(1)

            job = JobContext(job_position=flags["position"], job_desc=flags.get("description", ""),
                             job_experience=flags.get("experience", ""))
            llm = VertexRestClient(project=config.google_cloud_project, location=config.vertex_location,
                                   model=config.model_name,
                                   credentials_json=config.google_application_credentials)
            print(f"🧠 Generating {options.question_count} {options.interview_type} questions...")
            mock_id = InterviewSetupService(QuestionGenerator(llm), gateway).create(job, options)
            interview = gateway.get_interview(mock_id)

        if use_tts:
            print(f"🔊 TTS Mode: questions will be read aloud ({context.voice_gender} voice)")
            print("   (Use --text to disable speech)")
        else:
            print("📝 Text Mode: Questions will be displayed as text only")

        use_mic = "--mic" in sys.argv or "mic-device" in flags
        mic_device = None
        if "mic-device" in flags:
            if not flags["mic-device"].isdigit():
                print("❌ --mic-device= takes a PyAudio device index")
                sys.exit(1)
            mic_device = int(flags["mic-device"])
        if use_mic:
            print("🎙️  Voice Mode: answers are transcribed from the microphone")

        asyncio.run(run_interview(interview, gateway, context, config, use_tts, use_mic, mic_device))
        show_report(gateway, interview.mock_id, flags.get("pdf"))

    except NotAuthenticatedError:
        print("❌ Not signed in. Set MOCKPREP_USER_EMAIL to your account email.")
        sys.exit(1)
    except (GenerationError, DocumentError, OSError) as e:
        print(f"❌ {e}")
        sys.exit(1)
    except ImportError as e:
        print(f"❌ {e}. Microphone capture needs: pip install 'mockprep[mic]'")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n👋 Interrupted")

    print(f"📁 Detailed log: {log_file}")


if __name__ == "__main__":
    main()

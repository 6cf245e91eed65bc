from pathlib import Path

import pytest

from chunkscribe.errors import ChunkTranscriptionFailed, DurationUnknown, RemoteAuthError, RemoteFormatError
from chunkscribe.orchestrator import TranscriptionService
from chunkscribe.pipeline_config import PipelineConfig, RemoteClientConfig
from chunkscribe.schemas import TranscriptionOptions


class FakeTranscoder:
    def __init__(self, duration=30.0, normalized_size=100):
        self.duration = duration
        self.normalized_size = normalized_size
        self.normalize_calls = []
        self.extract_calls = []

    async def probe_duration(self, path):
        if self.duration is None:
            raise DurationUnknown("ffprobe exited with 1")
        return self.duration

    async def normalize(self, source, output):
        self.normalize_calls.append((Path(source), Path(output)))
        Path(output).write_bytes(b"w" * self.normalized_size)
        return Path(output)

    async def extract_segment(self, source, output, start, span, *, stream_copy=True):
        self.extract_calls.append((Path(source), Path(output).name, start, span))
        Path(output).write_bytes(b"c")
        return Path(output)


class FakeClient:
    """Answers with the chunk/file name; raises per-name errors when configured."""

    def __init__(self, config, errors=None, texts=None):
        self.config = config
        self.errors = errors or {}
        self.texts = texts or {}
        self.calls = []
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True
        return False

    async def transcribe_file(self, path, options):
        path = Path(path)
        self.calls.append((path, options))
        if path.name in self.errors:
            raise self.errors[path.name]
        return self.texts.get(path.name, f"said {path.stem}")


def build_service(tmp_path, transcoder, errors=None, texts=None, **pipeline_overrides):
    clients = []

    def client_factory(config):
        client = FakeClient(config, errors=errors, texts=texts)
        clients.append(client)
        return client

    pipeline = PipelineConfig(payload_ceiling_bytes=1000, temp_dir=str(tmp_path / "scratch"), **pipeline_overrides)
    (tmp_path / "scratch").mkdir()
    service = TranscriptionService(
        pipeline,
        RemoteClientConfig(api_key="sk-test"),
        transcoder=transcoder,
        client_factory=client_factory,
    )
    return service, clients


def write_audio(tmp_path, name, size):
    path = tmp_path / name
    path.write_bytes(b"a" * size)
    return path


def scratch_is_empty(tmp_path):
    return list((tmp_path / "scratch").iterdir()) == []


@pytest.mark.asyncio
async def test_small_supported_file_is_sent_directly(tmp_path):
    transcoder = FakeTranscoder(duration=30.0)
    service, clients = build_service(tmp_path, transcoder)
    source = write_audio(tmp_path, "talk.mp3", 500)

    outcome = await service.transcribe_file(source, TranscriptionOptions(language="hi"), request_id="req-1")

    assert outcome.text == "said talk"
    assert outcome.model == "gpt-4o-mini-transcribe"
    assert not outcome.chunked
    assert outcome.chunk_count == 0
    assert [call[0] for call in clients[0].calls] == [source]
    assert clients[0].calls[0][1].language == "hi"
    assert transcoder.extract_calls == []
    assert transcoder.normalize_calls == []
    assert clients[0].exited
    assert scratch_is_empty(tmp_path)


@pytest.mark.asyncio
async def test_rejected_format_falls_back_to_normalization(tmp_path):
    transcoder = FakeTranscoder(duration=30.0)
    service, clients = build_service(tmp_path, transcoder, errors={"talk.m4a": RemoteFormatError("corrupt")})
    source = write_audio(tmp_path, "talk.m4a", 500)

    outcome = await service.transcribe_file(source)

    assert outcome.text == "said normalized"
    assert [call[0].name for call in clients[0].calls] == ["talk.m4a", "normalized.wav"]
    assert transcoder.normalize_calls[0][0] == source
    assert transcoder.extract_calls == []
    assert scratch_is_empty(tmp_path)


@pytest.mark.asyncio
async def test_unsupported_extension_is_normalized_without_direct_attempt(tmp_path):
    transcoder = FakeTranscoder(duration=30.0)
    service, clients = build_service(tmp_path, transcoder)
    source = write_audio(tmp_path, "talk.aac", 500)

    outcome = await service.transcribe_file(source)

    assert outcome.text == "said normalized"
    assert [call[0].name for call in clients[0].calls] == ["normalized.wav"]


@pytest.mark.asyncio
async def test_other_remote_errors_do_not_fall_back(tmp_path):
    transcoder = FakeTranscoder(duration=30.0)
    service, _ = build_service(tmp_path, transcoder, errors={"talk.mp3": RemoteAuthError("bad key")})
    source = write_audio(tmp_path, "talk.mp3", 500)

    with pytest.raises(RemoteAuthError):
        await service.transcribe_file(source)
    assert transcoder.normalize_calls == []


@pytest.mark.asyncio
async def test_oversized_file_is_chunked(tmp_path):
    # 1750 bytes over 700s against a 1000 byte ceiling: 800 / 2.5 -> 320s raw, 160s after expansion
    transcoder = FakeTranscoder(duration=700.0)
    service, clients = build_service(tmp_path, transcoder, max_concurrent=2)
    source = write_audio(tmp_path, "talk.mp3", 1750)

    outcome = await service.transcribe_file(source, request_id="req-big")

    assert outcome.chunked
    assert outcome.chunk_count == 5
    assert [(call[1], call[2], call[3]) for call in transcoder.extract_calls] == [
        ("chunk_000.mp3", 0.0, 160.0),
        ("chunk_001.mp3", 160.0, 160.0),
        ("chunk_002.mp3", 320.0, 160.0),
        ("chunk_003.mp3", 480.0, 160.0),
        ("chunk_004.mp3", 640.0, 60.0),
    ]
    assert all(call[0] == source for call in transcoder.extract_calls)
    assert outcome.text == "said chunk_000 said chunk_001 said chunk_002 said chunk_003 said chunk_004"
    assert scratch_is_empty(tmp_path)


@pytest.mark.asyncio
async def test_chunked_transcript_drops_hallucinated_chunks(tmp_path):
    transcoder = FakeTranscoder(duration=700.0)
    service, _ = build_service(tmp_path, transcoder, texts={"chunk_002.mp3": "ok " * 40})
    source = write_audio(tmp_path, "talk.mp3", 1750)

    outcome = await service.transcribe_file(source)

    assert outcome.text == "said chunk_000 said chunk_001 said chunk_003 said chunk_004"


@pytest.mark.asyncio
async def test_oversized_file_with_unknown_duration_fails(tmp_path):
    transcoder = FakeTranscoder(duration=None)
    service, clients = build_service(tmp_path, transcoder)
    source = write_audio(tmp_path, "talk.mp3", 1750)

    with pytest.raises(DurationUnknown):
        await service.transcribe_file(source)

    assert clients[0].calls == []
    assert transcoder.extract_calls == []
    assert scratch_is_empty(tmp_path)


@pytest.mark.asyncio
async def test_small_file_with_unknown_duration_is_sent_directly(tmp_path):
    transcoder = FakeTranscoder(duration=None)
    service, clients = build_service(tmp_path, transcoder)
    source = write_audio(tmp_path, "talk.mp3", 500)

    outcome = await service.transcribe_file(source)

    assert outcome.text == "said talk"
    assert transcoder.extract_calls == []


@pytest.mark.asyncio
async def test_long_recording_is_chunked_even_when_small(tmp_path):
    transcoder = FakeTranscoder(duration=1200.0)
    service, _ = build_service(tmp_path, transcoder, max_direct_duration_seconds=600.0)
    source = write_audio(tmp_path, "talk.mp3", 500)

    outcome = await service.transcribe_file(source)

    assert outcome.chunked
    assert outcome.chunk_count == 4
    assert transcoder.extract_calls[-1][2:] == (900.0, 300.0)


@pytest.mark.asyncio
async def test_duration_threshold_can_be_disabled(tmp_path):
    transcoder = FakeTranscoder(duration=1200.0)
    service, _ = build_service(tmp_path, transcoder, max_direct_duration_seconds=0)
    source = write_audio(tmp_path, "talk.mp3", 500)

    outcome = await service.transcribe_file(source)

    assert not outcome.chunked
    assert transcoder.extract_calls == []


@pytest.mark.asyncio
async def test_normalized_file_still_too_large_chunks_the_original(tmp_path):
    transcoder = FakeTranscoder(duration=300.0, normalized_size=5000)
    service, clients = build_service(tmp_path, transcoder)
    source = write_audio(tmp_path, "talk.aac", 900)

    outcome = await service.transcribe_file(source)

    assert outcome.chunked
    assert all(call[0] == source for call in transcoder.extract_calls)
    assert "normalized.wav" not in [call[0].name for call in clients[0].calls]
    assert scratch_is_empty(tmp_path)


@pytest.mark.asyncio
async def test_chunk_failure_aborts_and_cleans_up(tmp_path):
    transcoder = FakeTranscoder(duration=700.0)
    service, _ = build_service(tmp_path, transcoder, errors={"chunk_003.mp3": RemoteAuthError("revoked")})
    source = write_audio(tmp_path, "talk.mp3", 1750)

    with pytest.raises(ChunkTranscriptionFailed) as excinfo:
        await service.transcribe_file(source)

    assert excinfo.value.index == 3
    assert scratch_is_empty(tmp_path)


@pytest.mark.asyncio
async def test_best_effort_policy_returns_partial_transcript(tmp_path):
    transcoder = FakeTranscoder(duration=700.0)
    service, _ = build_service(
        tmp_path,
        transcoder,
        errors={"chunk_003.mp3": RemoteAuthError("revoked")},
        failure_policy="best_effort",
    )
    source = write_audio(tmp_path, "talk.mp3", 1750)

    outcome = await service.transcribe_file(source)

    assert outcome.text == "said chunk_000 said chunk_001 said chunk_002 said chunk_004"


@pytest.mark.asyncio
async def test_diarization_uses_diarization_model(tmp_path):
    service, clients = build_service(tmp_path, FakeTranscoder(duration=30.0))
    source = write_audio(tmp_path, "talk.wav", 500)

    outcome = await service.transcribe_file(source, TranscriptionOptions(diarize=True))

    assert outcome.model == "gpt-4o-transcribe-diarize"
    assert clients[0].calls[0][1].diarize


@pytest.mark.asyncio
async def test_hallucinated_direct_result_is_emptied(tmp_path):
    service, _ = build_service(tmp_path, FakeTranscoder(duration=30.0), texts={"talk.mp3": "x" * 50})
    source = write_audio(tmp_path, "talk.mp3", 500)

    outcome = await service.transcribe_file(source)

    assert outcome.text == ""


@pytest.mark.asyncio
async def test_duration_just_past_chunk_boundary_does_not_fail_the_request(tmp_path):
    transcoder = FakeTranscoder(duration=1200.0004)
    service, clients = build_service(tmp_path, transcoder, max_direct_duration_seconds=600.0)
    source = write_audio(tmp_path, "talk.mp3", 500)

    outcome = await service.transcribe_file(source)

    assert outcome.text == "said chunk_000 said chunk_001 said chunk_002 said chunk_003"
    assert outcome.chunk_count == 4
    assert [call[1] for call in transcoder.extract_calls] == [f"chunk_{i:03d}.mp3" for i in range(4)]
    assert len(clients[0].calls) == 4
    assert scratch_is_empty(tmp_path)

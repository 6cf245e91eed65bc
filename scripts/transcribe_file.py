import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from chunkscribe.config import settings
from chunkscribe.errors import TranscriptionError
from chunkscribe.orchestrator import TranscriptionService
from chunkscribe.schemas import TranscriptionOptions

EMPTY_TRANSCRIPT_HINTS = [
    "Audio file is silent or contains no speech",
    "Audio quality is too poor",
    "Every chunk was discarded as a likely hallucination",
    "OpenAI API key is invalid or missing",
]


async def run(path: Path, options: TranscriptionOptions) -> int:
    service = TranscriptionService.from_settings(settings)

    print(f"Transcribing {path} ...")
    start = time.monotonic()
    try:
        outcome = await service.transcribe_file(path, options, request_id="cli")
    except TranscriptionError as exc:
        print(f"Transcription failed: {exc.message}")
        print(f"  {exc.cause_chain()}")
        return 1
    elapsed = time.monotonic() - start

    print(f"Completed in {elapsed:.2f}s with {outcome.model} ({outcome.chunk_count} chunks)")
    print(f"Text length: {len(outcome.text)} characters")
    print(f'Transcription: "{outcome.text}"')

    if not outcome.text:
        print("Warning: transcription returned empty text. Possible causes:")
        for hint in EMPTY_TRANSCRIPT_HINTS:
            print(f"  - {hint}")

    if options.prompt:
        generated = await service.generate_text(outcome.text, options.prompt)
        print(f"Generated text ({settings.text_generation_model}):\n{generated or '<none>'}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Transcribe a local audio file through the chunked pipeline")
    parser.add_argument("path", help="Path to the audio file")
    parser.add_argument("-l", "--language", help="Language hint (e.g. en, hi). Auto-detected when omitted.")
    parser.add_argument("--diarize", action="store_true", help="Use the speaker diarization model.")
    parser.add_argument("--prompt", help="Optional instruction to run over the finished transcript.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show pipeline logs.")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {path}")
        sys.exit(1)

    try:
        options = TranscriptionOptions(language=args.language, diarize=args.diarize, prompt=args.prompt)
    except ValueError as exc:
        parser.error(str(exc))

    sys.exit(asyncio.run(run(path, options)))

if __name__ == "__main__":
    main()

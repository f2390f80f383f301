"""
Offline harness: play every recording in the configured input directory
through a spectrogram session as fast as decoding allows and write the
composited export next to the other results.

Run with ``python -m scrollgram.harness [config.json]``.
"""
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from .audio_loader import audio_info, is_supported_file, load_audio, trim_audio
from .config import CONFIG_PATH, HarnessConfig, load_config
from .export import ExportFormat, save_image
from .session import SpectrogramSession
from .sources import audio_frame_sources

logger = logging.getLogger(__name__)


def _verify_image(path: Path) -> None:
    if not path.exists():
        raise RuntimeError(f"No image written to {path}")
    if path.stat().st_size == 0:
        raise RuntimeError(f"Empty image written to {path}")
    try:
        with Image.open(path) as check:
            check.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        path.unlink(missing_ok=True)
        raise RuntimeError(f"Invalid image written to {path}: {exc}") from exc


def render_file(audio_path: Path, cfg: HarnessConfig, output_dir: Optional[Path] = None) -> Path:
    """Render one recording, one channel strip per audio channel."""
    output_dir = output_dir or cfg.output_directory
    output_dir.mkdir(parents=True, exist_ok=True)

    info = audio_info(audio_path)
    logger.info(
        "Rendering %s: %.2fs, %d channel(s) at %d Hz",
        audio_path.name,
        info["duration"],
        info["channels"],
        info["sample_rate"],
    )
    audio, sample_rate = load_audio(audio_path, target_sample_rate=cfg.sample_rate)
    audio = trim_audio(audio, sample_rate, cfg.max_duration_sec)
    settings = cfg.render_settings(sample_rate)
    sources = audio_frame_sources(audio, sample_rate, settings.fft_size, cfg.frames_per_second)

    export_format = ExportFormat.parse(cfg.export_format)
    session = SpectrogramSession(
        sources,
        settings,
        cfg.width,
        cfg.height,
        frames_per_second=cfg.frames_per_second,
        export_format=export_format,
        title=f"{cfg.title} - {audio_path.name}",
    )
    ticks = session.run()
    logger.info("Rendered %s: %d channel(s), %d ticks", audio_path.name, len(sources), ticks)

    options = replace(session.export_options(), legend=cfg.legend)
    output_path = output_dir / f"{audio_path.stem}_spectrogram{export_format.extension}"
    save_image(session.export_image(options), output_path)
    _verify_image(output_path)
    return output_path


def generate_for_directory(input_dir: Path, output_dir: Path, cfg: HarnessConfig) -> List[Path]:
    audio_files = sorted(p for p in input_dir.iterdir() if p.is_file() and is_supported_file(p))
    if not audio_files:
        logger.warning("No audio files found in %s", input_dir)
    return [render_file(path, cfg, output_dir=output_dir) for path in audio_files]


def run_harness(config_path: Path = CONFIG_PATH) -> List[Path]:
    cfg = load_config(config_path)
    return generate_for_directory(cfg.input_directory, cfg.output_directory, cfg)


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    argv = sys.argv[1:] if argv is None else argv
    config_path = Path(argv[0]) if argv else CONFIG_PATH
    results = run_harness(config_path)
    logger.info("Generated %d spectrogram(s)", len(results))


if __name__ == "__main__":
    main()

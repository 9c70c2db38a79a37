import os
import sys
import argparse

try:
    from rich.console import Console
    from rich.table import Table
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, TextColumn
    from rich.text import Text
    from rich import box
except ImportError:
    print("Error: The 'rich' library is required for the CLI but not installed.", file=sys.stderr)
    print("Please install it with: pip install audiopreview[cli]", file=sys.stderr)
    sys.exit(1)

import numpy as np

from audiopreviewlib import __version__
from audiopreviewlib.audio import (
    AudioLoadError,
    crop,
    format_duration,
    load_audio,
    probe,
    sanitize_filename,
    write_wav,
)
from audiopreviewlib.axes import (
    channel_label,
    effective_frequency_range,
    fraction_to_frequency,
    frequency_ticks,
    time_ticks,
)
from audiopreviewlib.colormap import colorize_spectrogram, format_rgb
from audiopreviewlib.config import (
    ConfigError,
    build_structured_defaults,
    load_preset,
    merge_structured,
    validate_config,
)
from audiopreviewlib.events import EventBus
from audiopreviewlib.models import FrequencyScale
from audiopreviewlib.player_settings import PlayerSettingsStore
from audiopreviewlib.settings import AnalysisSettingsStore
from audiopreviewlib.worker import AnalysisWorker

console = Console()


def positive_int(value):
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return ivalue


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="AudioPreview: waveform and spectrogram analysis",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--version", action="version",
                        version=f"audiopreview {__version__}")

    parser.add_argument("file", type=str,
                        help="Audio file to analyze (any format libsndfile reads)")
    parser.add_argument("--preset", type=str, default=None,
                        help="JSON preset with analysis/player defaults")
    parser.add_argument("--channel", type=int, default=None,
                        help="Preview only this channel (0-based); all channels when omitted")

    # Analysis overrides
    parser.add_argument("--scale", type=str, choices=["linear", "log", "mel"], default=None,
                        help="Frequency scale (default: from preset)")
    parser.add_argument("--window-index", type=int, default=None,
                        help="FFT window size index: 0 = 256 ... 7 = 32768 samples")
    parser.add_argument("--mel-filters", type=int, default=None,
                        help="Number of mel filters (20-200)")
    parser.add_argument("--min-freq", type=float, default=None,
                        help="Lower edge of the spectrogram (Hz)")
    parser.add_argument("--max-freq", type=float, default=None,
                        help="Upper edge of the spectrogram (Hz)")
    parser.add_argument("--min-time", type=float, default=None,
                        help="Start of the analyzed range (s)")
    parser.add_argument("--max-time", type=float, default=None,
                        help="End of the analyzed range (s)")
    parser.add_argument("--range-db", type=float, default=None,
                        help="Spectrogram color range below the peak (negative dB)")

    # Preview
    parser.add_argument("--width", type=positive_int, default=100,
                        help="Preview width in terminal columns")
    parser.add_argument("--height", type=positive_int, default=20,
                        help="Preview height in terminal rows (two pixels per row)")

    # Output
    parser.add_argument("--cut", type=str, default=None,
                        help="Write the selected time range to this WAV file")

    args = parser.parse_args(argv)

    if args.range_db is not None and args.range_db > 0.0:
        parser.error("--range-db must be <= 0")

    return args


def build_config(args):
    """Preset (or defaults) with command-line overrides applied and validated."""
    config = load_preset(args.preset) if args.preset else build_structured_defaults()
    overrides = {
        "frequency_scale": args.scale,
        "window_size_index": args.window_index,
        "mel_filter_num": args.mel_filters,
        "min_frequency": args.min_freq,
        "max_frequency": args.max_freq,
        "spectrogram_amplitude_range": args.range_db,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    config = merge_structured(config, {"analysis": overrides})
    validate_config(config)
    return config


# ---------------------------------------------------------------------------
# Rich console rendering (CLI-only, not in the library)
# ---------------------------------------------------------------------------

def print_info_table(info, settings, player):
    table = Table(box=box.ROUNDED, title=info["filename"], title_justify="left",
                  show_header=False)
    table.add_column("Key", style="bold cyan")
    table.add_column("Value")

    table.add_row("Format", f"{info['format']} / {info['encoding']}")
    table.add_row("Channels", str(info["channels"]))
    table.add_row("Sample rate", f"{info['sample_rate']} Hz")
    table.add_row("Duration", format_duration(info["duration"]))
    table.add_row("", "")
    table.add_row("Time range",
                  f"{settings.min_time:.3f} - {settings.max_time:.3f} s")
    table.add_row("Window / hop", f"{settings.window_size} / {settings.hop_size}"
                  + (" (auto)" if settings.auto_calc_hop_size else ""))
    scale = settings.frequency_scale.name.lower()
    if settings.frequency_scale == FrequencyScale.MEL:
        scale += f", {settings.mel_filter_num} filters"
    table.add_row("Frequency scale", scale)
    table.add_row("Frequency range",
                  f"{settings.min_frequency:.0f} - {settings.max_frequency:.0f} Hz")
    table.add_row("Amplitude range",
                  f"{settings.min_amplitude:.3f} - {settings.max_amplitude:.3f}")
    table.add_row("Color range", f"{settings.spectrogram_amplitude_range:g} dB")
    if player.enable_hpf or player.enable_lpf:
        table.add_row("Playback filters",
                      f"HPF {player.hpf_frequency:g} Hz / LPF {player.lpf_frequency:g} Hz")
    console.print(table)


def print_waveform_table(result, number_of_channels):
    table = Table(box=box.ROUNDED, title="Waveform", title_justify="left")
    table.add_column("Channel", style="cyan")
    table.add_column("Samples", justify="right")
    table.add_column("Stride", justify="right")
    table.add_column("Points", justify="right")
    table.add_column("Draw", justify="center")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    for ch, render in enumerate(result.waveforms):
        label = channel_label(ch, number_of_channels) or "mono"
        samples = render.samples
        lo = f"{float(np.min(samples)):.4f}" if samples.size else "-"
        hi = f"{float(np.max(samples)):.4f}" if samples.size else "-"
        table.add_row(label, str(render.end_index - render.start_index),
                      str(render.stride), str(samples.size), render.mode, lo, hi)
    console.print(table)


def _preview_rows(frames_db, settings, sample_rate, pixel_rows):
    """Column index into *frames_db* for each pixel row, top row first."""
    n_cols = frames_db.shape[1]
    fracs = 1.0 - (np.arange(pixel_rows) + 0.5) / pixel_rows
    if settings.frequency_scale == FrequencyScale.MEL:
        idx = np.floor(fracs * n_cols).astype(int)
    else:
        lo, hi = effective_frequency_range(settings)
        df = sample_rate / settings.window_size
        first_bin = int(settings.min_frequency // df)
        freqs = np.array([fraction_to_frequency(f, lo, hi, settings.frequency_scale)
                          for f in fracs])
        idx = np.floor(freqs / df).astype(int) - first_bin
    return np.clip(idx, 0, max(n_cols - 1, 0))


def print_spectrogram_preview(frames_db, settings, sample_rate, width, height, title):
    if frames_db.shape[0] == 0 or frames_db.shape[1] == 0:
        console.print(f"[yellow]{title}: nothing to show for this range.[/]")
        return

    rows = _preview_rows(frames_db, settings, sample_rate, height * 2)
    cols = np.floor((np.arange(width) + 0.5) / width * frames_db.shape[0]).astype(int)
    image = colorize_spectrogram(frames_db[np.ix_(cols, rows)].T,
                                 settings.spectrogram_amplitude_range)

    text = Text()
    for r in range(height):
        upper, lower = image[2 * r], image[2 * r + 1]
        for c in range(width):
            fg = format_rgb(tuple(int(v) for v in upper[c]))
            bg = format_rgb(tuple(int(v) for v in lower[c]))
            text.append("▀", style=f"{fg} on {bg}")
        text.append("\n")

    f_labels = ", ".join(t.label for t in reversed(frequency_ticks(settings)))
    t_labels = ", ".join(t.label for t in time_ticks(settings.min_time, settings.max_time)
                         if t.labeled)
    console.print(Panel(text, title=title, title_align="left",
                        subtitle=f"t: {t_labels} s", expand=False))
    console.print(f"[dim]Frequency ticks (Hz, top to bottom): {f_labels}[/]")


def write_cut(buffer, settings, target):
    directory, name = os.path.split(target)
    stem, ext = os.path.splitext(name)
    if ext.lower() != ".wav":
        stem = name
    out_path = os.path.join(directory, sanitize_filename(stem))
    write_wav(crop(buffer, settings.min_time, settings.max_time), out_path)
    return out_path


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------

def main(argv=None):
    args = parse_arguments(argv)

    if not os.path.isfile(args.file):
        console.print(f"[bold red]Error:[/] File '{args.file}' not found.")
        return 1

    try:
        config = build_config(args)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1

    try:
        info = probe(args.file)
        buffer = load_audio(args.file)
    except AudioLoadError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1

    if args.channel is not None and not 0 <= args.channel < buffer.number_of_channels:
        console.print(f"[bold red]Error:[/] Channel {args.channel} out of range "
                      f"(file has {buffer.number_of_channels}).")
        return 1

    event_bus = EventBus()
    store = AnalysisSettingsStore(event_bus)
    store.initialize_from_default(config["analysis"], buffer)
    if args.max_time is not None:
        store.set_max_time(args.max_time)
    if args.min_time is not None:
        store.set_min_time(args.min_time)
    settings = store.state

    player_store = PlayerSettingsStore(event_bus)
    player_store.initialize_from_default(config["player"], buffer)
    player_store.sync_filters_to_spectrogram(settings)

    print_info_table(info, settings, player_store.state)

    if config.get("auto_analyze", True):
        with AnalysisWorker(event_bus=event_bus) as worker, Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("[cyan]Analyzing...", total=None)
            result = worker.submit(settings, buffer).result()

        if result is not None:
            if result.waveforms:
                print_waveform_table(result, buffer.number_of_channels)
            channels = range(len(result.spectrograms))
            if args.channel is not None and result.spectrograms:
                channels = [args.channel]
            for ch in channels:
                label = channel_label(ch, buffer.number_of_channels)
                title = "Spectrogram" + (f" ({label})" if label else "")
                print_spectrogram_preview(result.spectrograms[ch], settings,
                                          buffer.sample_rate, args.width, args.height,
                                          title)
            console.print(f"[dim]Analysis took {result.elapsed_ms:.0f} ms[/]")

    if args.cut:
        out_path = write_cut(buffer, settings, args.cut)
        console.print(f"\n[green]Cut saved to: {out_path}[/]")

    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Command line interface for Taptic
Run the live listener, classify a recording, send a test relay, inspect
history, or benchmark the classifier
"""

import argparse
import json
import logging
import queue
import sys

from .app_config import AppConfig
from .audio_capture import MicrophoneSource, FileSource
from .classification_service import TapticService
from .config import MODEL_PATH, LABELS_PATH, HISTORY_DB_PATH, LOG_FILE, LOG_FORMAT, BROADCAST_PORT
from .engine.inference import YamnetClassifier
from .exceptions import TapticError
from .history import HistoryRepository
from .network.broadcast_sender import BroadcastSender

logger = logging.getLogger(__name__)


def load_app_config(args):
    if args.config:
        with open(args.config, "r", encoding="utf-8") as f:
            app_config = AppConfig.from_dict(json.load(f))
    else:
        app_config = AppConfig()

    if args.threshold is not None:
        app_config.set_notify_threshold(args.threshold)
    for label in args.emergency_label or []:
        app_config.set_emergency_label(label, True)
    for label in args.relay_label or []:
        app_config.set_broadcast_send_enabled(label, True)
    if args.mute:
        app_config.set_play_sound(False)
    return app_config


def format_results(results, level):
    meter = "#" * int(level * 20)
    ranked = ", ".join(f"{r.label} {r.score:.2f}{'!' if r.is_emergency else ''}" for r in results)
    return f"[{meter:<20}] {ranked}"


class TapticApp:
    """
    Main application class for Taptic
    """

    def __init__(self, args):
        self.args = args
        self.service = None

    def _build_classifier(self):
        return YamnetClassifier(model_path=self.args.model, labels_path=self.args.labels)

    # -------------------------------------------------------------------
    # Run live service
    # -------------------------------------------------------------------
    def run(self):
        app_config = load_app_config(self.args)
        history = HistoryRepository(self.args.history_db)

        self.service = TapticService(
            app_config,
            self._build_classifier(),
            MicrophoneSource(device=self.args.device),
            history=history,
            device_name=self.args.device_name,
            enable_relay=not self.args.no_relay,
            port=self.args.port,
            log_file=self.args.log_file,
        )

        try:
            self.service.start()
            print("\n[*] Listening for sounds...")
            print("[*] Press Ctrl+C to stop\n")

            while True:
                try:
                    update = self.service.frame_queue.get(timeout=1.0)
                except queue.Empty:
                    continue
                if self.args.show_levels:
                    print(format_results(update.results, update.level))

        except KeyboardInterrupt:
            print("\n[*] Stopping...")
        finally:
            self.service.stop()
            history.close()
        return 0

    # -------------------------------------------------------------------
    # Classify a recording
    # -------------------------------------------------------------------
    def classify_file(self):
        app_config = load_app_config(self.args)
        app_config.set_play_sound(False)

        source = FileSource(self.args.path)
        self.service = TapticService(
            app_config,
            self._build_classifier(),
            source,
            device_name=self.args.device_name,
            enable_relay=False,
            play_audio=False,
            log_file="",
        )

        classifier = self.service.classifier
        if not classifier.load_model():
            print("Model could not be loaded; scores will be empty")

        source.start()
        window_index = 0
        while True:
            hop = source.read_hop()
            if hop is None:
                break
            processed = self.service.process_hop(hop)
            if processed is None:
                continue
            results, level = processed
            seconds = window_index * self.service.frame_assembler.hop_samples / source.sample_rate
            print(f"{seconds:7.2f}s {format_results(results, level)}")
            window_index += 1
        source.stop()

        delivered = self.service.notifier.drain()
        print(f"\n{window_index} windows, {delivered} notifications")
        return 0

    # -------------------------------------------------------------------
    # Send one relay message
    # -------------------------------------------------------------------
    def send(self):
        sender = BroadcastSender(self.args.device_name, port=self.args.port)
        thread = sender.send(self.args.label)
        thread.join(timeout=2.0)
        print(f"Broadcast '{self.args.label}' as {sender.device_name}")
        return 0

    # -------------------------------------------------------------------
    # Detection history
    # -------------------------------------------------------------------
    def history(self):
        repository = HistoryRepository(self.args.history_db)
        try:
            if self.args.clear:
                repository.clear()
                print("History cleared")
                return 0

            events = repository.get_all(limit=self.args.limit)
            if not events:
                print("No detections recorded")
            for event in events:
                source = event.device_name if event.is_remote else "This Device"
                flag = " [EMERGENCY]" if event.is_emergency else ""
                print(f"{event.timestamp_ms} {source} • {event.label} ({event.confidence:.0%}){flag}")
            return 0
        finally:
            repository.close()

    # -------------------------------------------------------------------
    # Benchmark classifier
    # -------------------------------------------------------------------
    def benchmark(self):
        print("Benchmarking classifier against the hop deadline")
        print("================================================")

        classifier = self._build_classifier()
        if not classifier.load_model():
            print("Model could not be loaded")
            return 1

        results = classifier.benchmark_latency(num_runs=self.args.runs)
        print(f"Average latency: {results['average_latency_ms']:.2f} ms")
        print(f"Max latency: {results['max_latency_ms']:.2f} ms")
        print(f"Deadline: {results['deadline_ms']:.0f} ms")
        print(f"Meets deadline: {'yes' if results['meets_deadline'] else 'no'}")

        info = classifier.get_model_info()
        print(f"Input shape: {info['input_shape']}")
        print(f"Output shape: {info['output_shape']}")
        return 0


# -------------------------------------------------------------------
# Entry point
# -------------------------------------------------------------------
def build_parser():
    parser = argparse.ArgumentParser(
        description="Taptic: ambient sound alerts with LAN relay"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--model", default=MODEL_PATH, help=f"TFLite model (default: {MODEL_PATH})")
    common.add_argument("--labels", default=LABELS_PATH, help=f"Class map CSV (default: {LABELS_PATH})")
    common.add_argument("--config", help="JSON file with user preferences")
    common.add_argument("--threshold", type=float, help="Notification threshold 0.0-1.0")
    common.add_argument("--emergency-label", action="append", help="Mark a label as emergency")
    common.add_argument("--relay-label", action="append", help="Relay this label to peers")
    common.add_argument("--mute", action="store_true", help="Do not play alert tones")
    common.add_argument("--device-name", help="Relay identity (default: device model)")
    common.add_argument("--port", type=int, default=BROADCAST_PORT, help="Relay UDP port")
    common.add_argument("--history-db", default=HISTORY_DB_PATH, help="Detection history database")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", parents=[common], help="Listen and alert")
    run_parser.add_argument("--device", type=int, help="sounddevice input device index")
    run_parser.add_argument("--no-relay", action="store_true", help="Disable LAN relay")
    run_parser.add_argument("--show-levels", action="store_true", help="Print top-3 for every window")
    run_parser.add_argument("--log-file", default=LOG_FILE, help="Alert log file")

    file_parser = subparsers.add_parser("classify-file", parents=[common], help="Classify a recording")
    file_parser.add_argument("path", help="Audio file to classify")

    send_parser = subparsers.add_parser("send", parents=[common], help="Broadcast one detection")
    send_parser.add_argument("label", help="Label to broadcast")

    history_parser = subparsers.add_parser("history", parents=[common], help="Show detection history")
    history_parser.add_argument("--limit", type=int, default=50, help="Rows to show (default: 50)")
    history_parser.add_argument("--clear", action="store_true", help="Delete all history")

    bench_parser = subparsers.add_parser("benchmark", parents=[common], help="Time classifier inference")
    bench_parser.add_argument("--runs", type=int, default=20, help="Inference runs (default: 20)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    app = TapticApp(args)
    commands = {
        "run": app.run,
        "classify-file": app.classify_file,
        "send": app.send,
        "history": app.history,
        "benchmark": app.benchmark,
    }

    try:
        return commands[args.command]()
    except TapticError as e:
        logger.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

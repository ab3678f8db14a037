"""CLI entry point: MQTT (LoRa uplinks) → InfluxDB."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, List, Optional

from prometheus_client import start_http_server

from common.config import Settings, get_settings, is_valid_server, parse_tags

from .core.domain.errors import LoraIngestError
from .core.transport import MessageHandler, MQTTClient, MQTTOptions
from .parsers import LOCATION_DATA, create_parser, get_types_list
from .sinks import InfluxDBSink, InfluxOptions

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(verbose: bool, debug: bool, log_file: Optional[str]) -> None:
    handlers: List[logging.Handler] = []
    if verbose:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lora-mqtt",
        description="Bridge LoRa uplinks from an MQTT broker into InfluxDB",
    )
    p.add_argument("-m", "--metric-name", default=settings.metric_name or LOCATION_DATA,
                   help="measurement name (default: %(default)s)")
    p.add_argument("-p", "--parser", default=settings.parser_type, choices=get_types_list(),
                   type=_parser_choice, help="uplink format (default: %(default)s)")
    p.add_argument("-t", "--tag", action="append", default=[], metavar="KEY=VALUE",
                   help="extra tag added to every metric (repeatable)")
    p.add_argument("-v", "--verbose", action="store_true", help="print everything to standard output")
    p.add_argument("-d", "--debug", action="store_true", help="enable debug logs")
    p.add_argument("--log-file", default="lora-mqtt.log", help="log file (empty to disable)")
    p.add_argument("--metrics-port", type=int, default=None,
                   help="expose prometheus metrics on this port")
    return p


def _parser_choice(value: str) -> str:
    for name in get_types_list():
        if name.lower() == value.strip().lower():
            return name
    return value


def _merge_tags(settings: Settings, cli_tags: List[str]) -> Dict[str, str]:
    tags = dict(settings.default_tags)
    tags.update(parse_tags(",".join(cli_tags)))
    return tags


def run(settings: Settings, args: argparse.Namespace) -> int:
    for name, url in (("mqtt", settings.mqtt_server_url), ("influxdb", settings.influxdb_server_url)):
        if not is_valid_server(url):
            logger.error("invalid %s server url %r (expected scheme://host:port)", name, url)
            return 1

    try:
        parser = create_parser(args.parser, args.metric_name)
    except LoraIngestError as e:
        logger.error("can't create %s parser: %s", args.parser, e)
        return 1
    parser.set_default_tags(_merge_tags(settings, args.tag))
    logger.debug("metric name=%s parser=%s tags=%s", args.metric_name, args.parser, parser.default_tags)

    influx_options = InfluxOptions.from_settings(settings)
    logger.debug(
        "InfluxDB options: server=%s username=%s database=%s precision=%s",
        influx_options.server, influx_options.username,
        influx_options.database, influx_options.precision,
    )
    sink = InfluxDBSink(influx_options)

    mqtt_options = MQTTOptions.from_settings(settings)
    if args.debug:
        mqtt_options.debug = True
    logger.debug(
        "MQTT options: server=%s username=%s qos=%d client_id=%s debug=%s",
        mqtt_options.server, mqtt_options.username, mqtt_options.qos,
        mqtt_options.client_id, mqtt_options.debug,
    )
    client = MQTTClient(mqtt_options, logger=logging.getLogger("lora_ingest.mqtt"))

    try:
        sink.connect()
        logger.info("connected to influxdb server=%s database=%s",
                    influx_options.server, influx_options.database)

        client.connect()
        logger.info("connected to mqtt server=%s", mqtt_options.server)

        client.subscribe(settings.mqtt_topic)
        logger.info("mqtt subscribed to topic %s", settings.mqtt_topic)
    except LoraIngestError as e:
        logger.error("startup failed: %s", e)
        client.close()
        sink.close()
        return 1

    handler = MessageHandler(client, parser, sink)
    try:
        handler.run()
    except KeyboardInterrupt:
        logger.warning("exiting")
    finally:
        client.close()
        sink.close()
        logger.info("Stopped. %s mqtt=%s", handler.stats, client.stats)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)

    setup_logging(args.verbose, args.debug, args.log_file or None)

    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info("prometheus metrics on :%d", args.metrics_port)

    return run(settings, args)


if __name__ == "__main__":
    sys.exit(main())

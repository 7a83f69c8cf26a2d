#!/usr/bin/env python3
import argparse
import logging

from crawlkit.config import DEFAULT_USER_AGENT, CrawlConfig
from crawlkit.engine import Collector
from crawlkit.errors import CrawlError
from crawlkit.metrics import StatsLogger
from crawlkit.parsing import Extractor, UrlTools
from crawlkit.prometheus_exporter import PrometheusExporter
from crawlkit.storage import JsonlWriter


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Polite, robots-aware concurrent crawler.")
    parser.add_argument("--start", nargs="+", required=True, help="One or more starting URLs.")
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--allowed-domain", dest="allowed_domains", nargs="+", default=[], help="Exact hosts to allow.")
    scope.add_argument("--domain-glob", nargs="+", default=[], help="Glob patterns matched against full URLs.")
    parser.add_argument("--max-depth", type=int, default=2, help="Maximum crawl depth (0 for unlimited).")
    parser.add_argument("--parallelism", type=int, default=4, help="Concurrent fetches per batch.")
    parser.add_argument("--random-delay", type=float, default=0.0, help="Upper bound of the politeness delay in seconds.")
    parser.add_argument("--timeout", type=float, default=10.0, help="HTTP timeout in seconds.")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header to send.")
    parser.add_argument("--max-retries", type=int, default=2, help="Retries for transient failures.")
    parser.add_argument("--retry-delay", type=float, default=1.0, help="Base retry delay in seconds.")
    parser.add_argument("--retry-backoff", type=float, default=2.0, help="Retry delay multiplier.")
    parser.add_argument("--max-visited", type=int, default=10_000, help="Visited URLs kept before a reset.")
    parser.add_argument("--ignore-robots", action="store_true", help="Ignore robots.txt (not recommended).")
    parser.add_argument("--allow-revisit", action="store_true", help="Fetch URLs again even if already visited.")
    parser.add_argument("--cookies", action="store_true", help="Keep cookies between requests.")
    parser.add_argument("--proxy", dest="proxies", action="append", default=[], help="Proxy URL (repeatable).")
    parser.add_argument(
        "--select",
        action="append",
        default=[],
        help="Selector to extract, css@... or xpath@... (repeatable).",
    )
    parser.add_argument("--follow", action="store_true", help="Follow <a href> links one level deeper.")
    parser.add_argument("--paginate", metavar="QUERY", default=None, help="Paginate the first start URL by QUERY.")
    parser.add_argument("--batch-size", type=int, default=5, help="Pages per pagination batch.")
    parser.add_argument("--start-page", type=int, default=1, help="First pagination page.")
    parser.add_argument("--out", dest="output_path", default="crawl.jsonl", help="Path to JSONL output file.")
    parser.add_argument("--metrics-interval", type=float, default=10.0, help="Seconds between perf logs (0 to disable).")
    parser.add_argument("--prometheus-port", type=int, default=0, help="Port for Prometheus metrics (0 to disable).")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase logging verbosity.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    return CrawlConfig(
        timeout=max(1.0, args.timeout),
        headers={"User-Agent": args.user_agent},
        max_depth=max(0, args.max_depth),
        max_parallelism=max(1, args.parallelism),
        random_delay=max(0.0, args.random_delay),
        allow_url_revisit=args.allow_revisit,
        max_retries=max(0, args.max_retries),
        retry_delay=max(0.0, args.retry_delay),
        retry_backoff=args.retry_backoff,
        max_visited=max(1, args.max_visited),
        ignore_robots_txt=args.ignore_robots,
        allowed_domains=args.allowed_domains,
        domain_glob=args.domain_glob,
        allow_cookies=args.cookies,
        proxies=args.proxies,
        metrics_interval=max(0.0, args.metrics_interval),
    )


def build_collector(config: CrawlConfig, args: argparse.Namespace, writer: JsonlWriter, http_client=None) -> Collector:
    collector = Collector(config, http_client=http_client)

    for selector in args.select:
        def write_match(node, ctx, selector=selector):
            writer.write({
                "url": ctx.page_url,
                "depth": ctx.current_depth,
                "selector": selector,
                "text": Extractor.node_text(node),
            })

        collector.on("html", selector, write_match)

    if args.follow:
        @collector.on_html("xpath", "/html")
        def follow_links(root, ctx):
            links = [UrlTools.normalize_link(ctx.page_url, href) for href in root.xpath("//a/@href")]
            collector.visit([link for link in links if link], ctx.current_depth + 1)

    return collector


def main(argv=None, http_client=None) -> int:
    args = parse_args(argv)
    log_level = logging.WARNING
    if args.verbose == 1:
        log_level = logging.INFO
    elif args.verbose >= 2:
        log_level = logging.DEBUG
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(threadName)s %(message)s",
    )

    try:
        config = build_config(args)
    except CrawlError as e:
        logging.error("Invalid configuration: %s", e)
        return 2

    with JsonlWriter(args.output_path) as writer:
        try:
            collector = build_collector(config, args, writer, http_client=http_client)
        except CrawlError as e:
            logging.error("Invalid selector: %s", e)
            return 2

        stats_thread = None
        if config.metrics_interval > 0:
            stats_thread = StatsLogger(collector.metrics, config.metrics_interval, logging.info)
            stats_thread.start()
        exporter = None
        if args.prometheus_port:
            exporter = PrometheusExporter(collector.metrics, port=args.prometheus_port)
            exporter.start()

        try:
            if args.paginate:
                collector.paginated_visit(
                    args.start[0], query=args.paginate, batch_size=max(1, args.batch_size), start_page=args.start_page
                )
            else:
                collector.visit(args.start)
        finally:
            if stats_thread:
                stats_thread.stop()
            if exporter:
                exporter.stop()

        logging.info("Finished. Stats: %s. Output: %s", collector.stats(), args.output_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

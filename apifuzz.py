########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################

"""APIFUZZ sends contract-derived, deliberately malformed requests to an API and
checks that every response falls in the expected response code family.
Important: fuzz only systems and APIs for which you have explicit authorization.
"""

from __future__ import annotations
import argparse
import logging
import os
import random
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import urllib3
from colorama import Fore, Style, just_fix_windows_console
from dotenv import load_dotenv
from tqdm import tqdm

from anomaly_catalog import DEFAULT_CATALOG
from auth_utils import AuthConfigError, configure_authentication
from continuous_fuzzer import MatchRule, RandomFuzzer
from custom_fuzzer import CustomFuzzerExecutor
from fuzz_models import FuzzingData
from fuzzer_units import (
    SANITIZE_AND_VALIDATE, TRIM_AND_VALIDATE, VALIDATE_AND_SANITIZE, VALIDATE_AND_TRIM,
    FuzzerRegistry, build_builtin_units,
)
from mutators import resolve_mutators
from openapi_universal import ContractError, iter_fuzzing_data, load_spec
from report_utils import FuzzReportGenerator
from security_fuzzer import SecurityFuzzer, load_security_config
from service_caller import Executor, ServiceCaller, TestCaseRecorder
from stop_conditions import DEFAULT_MAX_TESTS, StopConditions
from version import __version__

MAX_THREADS = 20
logger = logging.getLogger("apifuzz")


#================funtion styled_print styled_print =============
def styled_print(message: str, status: str = "info") -> None:
    symbols = {"info": "Info:", "ok": "OK:", "warn": "WARNING:", "fail": "FAIL:", "run": "->", "done": "Done"}
    colors = {"info": Fore.BLUE, "ok": Fore.GREEN, "warn": Fore.YELLOW, "fail": Fore.RED, "run": Fore.CYAN, "done": Fore.GREEN}
    print(f"{colors.get(status, '')}{symbols.get(status, '')} {message}{Style.RESET_ALL}")


#================funtion normalize_url normalize_url =============
def normalize_url(url: str) -> str:
    return url if url.startswith(("http://", "https://")) else "http://" + url


#================funtion create_output_directory create_output_directory =============
def create_output_directory(base_url: str, root: Optional[str] = None) -> Path:
    if root:
        out_dir = Path(root)
    else:
        clean = base_url.replace("https://", "").replace("http://", "").replace("/", "_").replace(":", "_")
        out_dir = Path(f"fuzz_{clean}_{datetime.now().strftime('%d-%m-%Y_%H%M%S')}")
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir


#================funtion _split_csv comma separated CLI value to list =============
def _split_csv(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


#================funtion setup_logging console + file logging =============
def setup_logging(output_dir: Path, debug: bool) -> Path:
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG] %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="[INFO] %(message)s")
    log_dir = output_dir / "log"
    log_dir.mkdir(exist_ok=True)
    logfile = log_dir / f"apifuzz_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    file_handler = logging.FileHandler(logfile, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.addHandler(file_handler)
    return logfile


#================funtion build_parser CLI definition =============
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"APIFUZZ {__version__} - API Contract Fuzzer")
    parser.add_argument("--url", default=os.getenv("APIFUZZ_BASE_URL"), help="Base URL of the API to fuzz (env: APIFUZZ_BASE_URL)")
    parser.add_argument("--contract", help="Path to the OpenAPI/Swagger contract (JSON or YAML)")
    parser.add_argument("--paths", help="Comma separated contract paths to fuzz (default: all)")
    parser.add_argument("--http-methods", help="Comma separated HTTP methods to fuzz (default: all)")
    parser.add_argument("--fuzzers", help="Comma separated fuzzer names to run; all others are disabled")
    parser.add_argument("--skip-fuzzers", help="Comma separated fuzzer names to disable")
    parser.add_argument("--fuzzers-config", help="YAML file with 'fuzzers: {Name: true|false}'")
    parser.add_argument("--list-fuzzers", action="store_true", help="Print the registered fuzzers and exit")
    parser.add_argument("--edge-spaces-strategy", choices=[TRIM_AND_VALIDATE, VALIDATE_AND_TRIM], default=TRIM_AND_VALIDATE,
                        help="Whether leading/trailing spaces are trimmed before validation (default: trimAndValidate)")
    parser.add_argument("--sanitization-strategy", choices=[SANITIZE_AND_VALIDATE, VALIDATE_AND_SANITIZE], default=SANITIZE_AND_VALIDATE,
                        help="Whether values are sanitized before validation (default: sanitizeAndValidate)")
    parser.add_argument("--random", action="store_true", help="Run the continuous random fuzzer instead of the built-in fuzzers")
    parser.add_argument("--mutators-folder", help="Folder with custom mutator YAML files (replaces built-in mutators)")
    parser.add_argument("--max-tests", type=int, help="Stop the random fuzzer after this many tests")
    parser.add_argument("--max-errors", type=int, help="Stop the random fuzzer after this many errors")
    parser.add_argument("--max-time", type=float, help="Stop the random fuzzer after this many seconds")
    parser.add_argument("--match-codes", help="Comma separated response codes or families (e.g. 500,5XX) reported as errors")
    parser.add_argument("--match-regex", help="Report responses whose body matches this regex")
    parser.add_argument("--match-words", type=int, help="Report responses with this number of words")
    parser.add_argument("--match-lines", type=int, help="Report responses with this number of lines")
    parser.add_argument("--match-size", type=int, help="Report responses with this body size in bytes")
    parser.add_argument("--seed", type=int, help="Seed for the random fuzzer")
    parser.add_argument("--security-config", help="YAML security dictionary file")
    parser.add_argument("--token", default=os.getenv("APIFUZZ_TOKEN"), help="Bearer token value (env: APIFUZZ_TOKEN)")
    parser.add_argument("--basic-auth", help="Basic auth in the form user:password")
    parser.add_argument("--apikey", help="API key value (sent in header specified by --apikey-header)")
    parser.add_argument("--apikey-header", default="X-API-Key", help="Header name for API key (default: X-API-Key)")
    parser.add_argument("--client-cert", help="Path to client certificate file (PEM, used for mTLS)")
    parser.add_argument("--client-key", help="Path to private key file (PEM, used for mTLS)")
    parser.add_argument("--headers-file", help="JSON/YAML file with headers sent on every request")
    parser.add_argument("--insecure", action="store_true", help="Disable TLS certificate validation (use only for testing)")
    parser.add_argument("--timeout", type=float, default=float(os.getenv("APIFUZZ_TIMEOUT", "10")), help="Request timeout in seconds (env: APIFUZZ_TIMEOUT)")
    parser.add_argument("--threads", type=int, default=4, help="Number of operations fuzzed concurrently (default: 4)")
    parser.add_argument("--output", help="Output directory for reports and logs")
    parser.add_argument("--debug", action="store_true", help="Enable debug output (verbose logging)")
    parser.add_argument("--version", action="version", version=f"APIFUZZ {__version__}")
    return parser


#================funtion build_registry enabled fuzzer units =============
def build_registry(args) -> FuzzerRegistry:
    units = build_builtin_units(args.edge_spaces_strategy, args.sanitization_strategy)
    if args.fuzzers_config:
        registry = FuzzerRegistry.from_yaml(args.fuzzers_config, units)
    else:
        registry = FuzzerRegistry(units)
    if args.fuzzers:
        registry.only(_split_csv(args.fuzzers))
    for name in _split_csv(args.skip_fuzzers):
        registry.set_enabled(name, False)
    return registry


#================funtion build_match_rule random fuzzer matchers =============
def build_match_rule(args) -> MatchRule:
    return MatchRule(
        codes=tuple(_split_csv(args.match_codes)),
        regex=args.match_regex,
        words=args.match_words,
        lines=args.match_lines,
        size=args.match_size,
    )


#================funtion fuzz_operation all enabled fuzzers for one operation =============
def fuzz_operation(data: FuzzingData, registry: FuzzerRegistry, executor: Executor,
                   security: Optional[SecurityFuzzer]) -> int:
    executed = 0
    for unit in registry.enabled_units():
        if not unit.selector.is_applicable(data):
            continue
        executed += len(unit.run(data, executor, DEFAULT_CATALOG))
    if security is not None:
        security.fuzz(data)
    return executed


#================funtion build_stop_conditions random fuzzer thresholds =============
def build_stop_conditions(args, rule: MatchRule) -> StopConditions:
    conditions = StopConditions(args.max_time, args.max_errors, args.max_tests)
    if not conditions.configured:
        styled_print("No stop condition given for the random fuzzer; using the default test limit", "warn")
    if not rule.is_set:
        styled_print("No --match-* argument given; every random test will be skipped", "warn")
        if args.max_errors is not None and args.max_tests is None and args.max_time is None:
            # nothing can count as an error, so --max-errors alone never fires
            styled_print(f"--max-errors cannot be reached without a matcher; stopping after {DEFAULT_MAX_TESTS} tests", "warn")
            conditions = StopConditions(max_errors=args.max_errors, max_tests=DEFAULT_MAX_TESTS)
    return conditions


#================funtion run_random continuous fuzzing, one operation at a time =============
def run_random(args, operations: List[FuzzingData], executor: Executor) -> None:
    rule = build_match_rule(args)
    rng = random.Random(args.seed)
    fuzzer = RandomFuzzer(
        executor,
        resolve_mutators(args.mutators_folder, rng),
        stop_conditions=build_stop_conditions(args, rule),
        match_rule=rule,
        rng=rng,
        show_progress=True,
    )
    for data in operations:
        tqdm.write(f"{Fore.CYAN}RandomFuzzer - {data.method} {data.contract_path}{Style.RESET_ALL}")
        fuzzer.fuzz(data)


#================funtion main main =============
def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    just_fix_windows_console()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_fuzzers:
        for name in build_registry(args).names():
            print(name)
        return 0
    if not args.url or not args.contract:
        parser.error("--url and --contract are required")

    args.url = normalize_url(args.url)
    output_dir = create_output_directory(args.url, args.output)
    logfile = setup_logging(output_dir, args.debug)
    styled_print(f"APIFUZZ {__version__} logging to {logfile}", "info")
    if args.insecure:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    try:
        session = configure_authentication(args)
        spec = load_spec(args.contract, inject_base_url=args.url)
        registry = build_registry(args)
        security_config = load_security_config(args.security_config) if args.security_config else None
    except (AuthConfigError, ContractError, OSError, ValueError) as e:
        logger.error("Configuration failed: %s", e)
        styled_print(str(e), "fail")
        return 2

    operations = list(iter_fuzzing_data(spec, _split_csv(args.paths), _split_csv(args.http_methods)))
    if not operations:
        styled_print("No operations left to fuzz after applying --paths/--http-methods", "warn")
        return 0
    styled_print(f"Contract loaded - {len(operations)} operations selected", "ok")

    recorder = TestCaseRecorder()
    caller = ServiceCaller(session, base_url=args.url, timeout=args.timeout)
    executor = Executor(caller, recorder)

    if args.random:
        run_random(args, operations, executor)
    else:
        security = SecurityFuzzer(security_config, CustomFuzzerExecutor(executor)) if security_config else None
        enabled = registry.enabled_units()
        styled_print(f"{len(enabled)} fuzzers enabled", "info")
        max_workers = max(1, min(args.threads, MAX_THREADS))
        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futures = {ex.submit(fuzz_operation, data, registry, executor, security): data for data in operations}
            for fut in tqdm(as_completed(futures), total=len(futures), desc="Operations", unit="op"):
                data = futures[fut]
                try:
                    fut.result()
                except Exception as e:
                    logger.exception("Fuzzing %s %s aborted", data.method, data.contract_path)
                    tqdm.write(f"{Fore.RED}[ERR] {data.method} {data.contract_path}: {e}{Style.RESET_ALL}")

    summary = recorder.summary()
    report = FuzzReportGenerator(recorder.results, args.url, recorder.config_errors)
    paths = report.save(output_dir)
    styled_print(f"Tests: {summary['total']} | errors: {summary['fail']} | passed: {summary['pass']} | "
                 f"skipped: {summary['skip']} | config errors: {summary['config_errors']}",
                 "fail" if summary["fail"] else "ok")
    styled_print(f"Report saved to {paths['html']}", "done")
    return 1 if summary["fail"] or summary["config_errors"] else 0


if __name__ == "__main__":
    sys.exit(main())

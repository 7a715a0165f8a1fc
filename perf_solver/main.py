import argparse
import os
import shutil
import sys
from pathlib import Path
from typing import List, Mapping, Optional
import yaml
from dotenv import load_dotenv

from perf_solver.core.exceptions import (
    SolverException, ConfigurationError, ConstraintMismatch, MeasurementFailure
)
from perf_solver.attack.solver import SideChannelSolver, SolverConfig, DEFAULT_ALPHABET
from perf_solver.services.length_service import LengthDiscovery, create_strategy, STRATEGIES
from perf_solver.services.perf_service import PerfMeasurementService, DEFAULT_EVENT
from perf_solver.services.probe_builder import ProbeBuilder
from perf_solver.utils.logger import Logger


DEFAULT_CONFIG_PATH = "config/config.yaml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_CONSTRAINT = 2
EXIT_FAILURE = 3
EXIT_INTERRUPTED = 130

INT_KEYS = ('threads', 'length', 'max_length', 'iterations')
STR_KEYS = ('alphabet', 'padding', 'input_beg', 'input_end', 'event', 'starts_with',
            'ends_with', 'length_strategy')

# environment variable -> (config key, type)
ENV_OVERRIDES = {
    'SOLVER_THREADS': ('threads', int),
    'MAX_PASSWORD_LENGTH': ('max_length', int),
    'PERF_EVENT': ('event', str),
    'PERF_ITERATIONS': ('iterations', int),
}


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Read the YAML configuration.

    Without an explicit path the default file is optional.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if config_path is None and not Path(path).exists():
        return {}

    try:
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML config: {str(e)}")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recover a crackme password from perf instruction counts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  perf-solver ./crackme --length 12
  perf-solver ./crackme --alphabet abcdef0123456789 --threads 8 --padding _
  perf-solver ./crackme --stdin --starts-with 'flag{' --ends-with '}'
        """
    )

    parser.add_argument('exe_path', help='Target executable')
    parser.add_argument('--config', default=None,
                        help=f'YAML config file (default: {DEFAULT_CONFIG_PATH} if present)')
    parser.add_argument('-a', '--alphabet', default=None,
                        help='Candidate characters (default: 0x01-0x7f)')
    parser.add_argument('-t', '--threads', type=int, default=None,
                        help='Worker threads (default: CPU count)')
    parser.add_argument('-l', '--length', type=int, default=None,
                        help='Password length; 0 searches for it (default: 0)')
    parser.add_argument('--max-length', type=int, default=None,
                        help='Largest length tried by the length search (default: 32)')
    parser.add_argument('-p', '--padding', default=None,
                        help='Character used to pad probes to the password length')
    parser.add_argument('--input-beg', default=None,
                        help='Literal text sent before the guess')
    parser.add_argument('--input-end', default=None,
                        help='Literal text sent after the guess')
    parser.add_argument('-i', '--iterations', type=int, default=None,
                        help='perf runs averaged per measurement (default: 1)')
    parser.add_argument('-e', '--event', default=None,
                        help=f'perf event to count (default: {DEFAULT_EVENT})')
    parser.add_argument('--stdin', action='store_true', default=None,
                        help='Send the probe on stdin instead of as an argument')
    parser.add_argument('--starts-with', default=None,
                        help='Known beginning of the password')
    parser.add_argument('--ends-with', default=None,
                        help='Known end of the password')
    parser.add_argument('--length-strategy', default=None, choices=sorted(STRATEGIES),
                        help='How the length search spots the length (default: deviation)')
    parser.add_argument('-q', '--quiet', action='store_true', default=None,
                        help='Print only the password')

    return parser.parse_args(argv)


def build_config(
    args: argparse.Namespace,
    file_config: dict,
    environ: Mapping[str, str]
) -> SolverConfig:
    """Layer defaults, YAML, environment and command line (in that order)."""
    values = {}

    solver_section = file_config.get('solver') or {}
    input_section = file_config.get('input') or {}
    constraints_section = file_config.get('constraints') or {}

    for key in ('alphabet', 'threads', 'length', 'max_length', 'padding', 'iterations',
                'event', 'stdin', 'quiet', 'length_strategy'):
        if solver_section.get(key) is not None:
            values[key] = solver_section[key]
    if input_section.get('beg') is not None:
        values['input_beg'] = input_section['beg']
    if input_section.get('end') is not None:
        values['input_end'] = input_section['end']
    for key in ('starts_with', 'ends_with'):
        if constraints_section.get(key) is not None:
            values[key] = constraints_section[key]

    for env_name, (key, cast) in ENV_OVERRIDES.items():
        if environ.get(env_name):
            try:
                values[key] = cast(environ[env_name])
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_name}: {environ[env_name]}")

    for key in ('alphabet', 'threads', 'length', 'max_length', 'padding', 'input_beg',
                'input_end', 'iterations', 'event', 'stdin', 'starts_with', 'ends_with',
                'length_strategy', 'quiet'):
        value = getattr(args, key, None)
        if value is not None:
            values[key] = value

    for key in INT_KEYS:
        if key in values:
            try:
                values[key] = int(values[key])
            except (TypeError, ValueError):
                raise ConfigurationError(f"{key} must be an integer, got {values[key]!r}")
    for key in STR_KEYS:
        if key in values:
            values[key] = str(values[key])

    config = SolverConfig(exe_path=args.exe_path, **values)
    if config.alphabet is None or config.alphabet == "":
        config.alphabet = DEFAULT_ALPHABET
    return config


def check_environment(config: SolverConfig) -> None:
    """Startup checks that need the host: target file and perf binary."""
    if not Path(config.exe_path).is_file():
        raise ConfigurationError(f"File does not exist: {config.exe_path}")

    if shutil.which("perf") is None:
        raise ConfigurationError("Can't find perf binary in your $PATH")


def build_logger(config: SolverConfig, file_config: dict, environ: Mapping[str, str]) -> Logger:
    logging_section = file_config.get('logging') or {}
    level = str(environ.get('LOG_LEVEL') or logging_section.get('level', 'INFO')).upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(f"Invalid log level: {level}")

    return Logger(
        name="PerfSolver",
        level=level,
        log_file=logging_section.get('file'),
        console=logging_section.get('console', True) and not config.quiet
    )


def report_mismatch(error: ConstraintMismatch) -> None:
    print(f"Found password and {error.constraint} argument don't match-up", file=sys.stderr)
    print(f"Found password: {error.found}", file=sys.stderr)
    print(f"{error.constraint}: {error.expected}", file=sys.stderr)
    print("Ending execution...", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    try:
        args = parse_arguments(argv)
        file_config = load_config(args.config)
        config = build_config(args, file_config, os.environ)
        config.validate()
        check_environment(config)
        create_strategy(config.length_strategy)

        logger = build_logger(config, file_config, os.environ)

        if args.alphabet is None and not (file_config.get('solver') or {}).get('alphabet'):
            logger.info("No alphabet given. Using the default one: ascii values from 0x01 to 0x7f.")

        if config.threads == 0:
            config.threads = os.cpu_count() or 1
            logger.info(
                f"No number of threads given. Using the detected recommended number instead: "
                f"{config.threads}"
            )

        measurement_service = PerfMeasurementService(
            exe_path=config.exe_path,
            event=config.event,
            iterations=config.iterations,
            use_stdin=config.stdin,
            logger=logger
        )

        # Length search always counts instructions, whatever event the search uses
        length_discovery = LengthDiscovery(
            measurement_service=PerfMeasurementService(
                exe_path=config.exe_path,
                event=DEFAULT_EVENT,
                iterations=config.iterations,
                use_stdin=config.stdin,
                logger=logger
            ),
            probe_builder=ProbeBuilder(config.input_beg, config.input_end, 0, config.padding),
            strategy=create_strategy(config.length_strategy),
            logger=logger
        )

        solver = SideChannelSolver(config, measurement_service, length_discovery, logger)
        password = solver.solve()

        if config.quiet:
            print(password, end="")
        else:
            print(f"Found: {password}")
        sys.stdout.flush()

        return EXIT_OK

    except ConfigurationError as e:
        print(f"Configuration error: {str(e)}", file=sys.stderr)
        return EXIT_CONFIG
    except ConstraintMismatch as e:
        report_mismatch(e)
        return EXIT_CONSTRAINT
    except MeasurementFailure as e:
        print(f"Measurement error: {str(e)}", file=sys.stderr)
        return EXIT_FAILURE
    except SolverException as e:
        print(f"Solver error: {str(e)}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\n\nExiting...\n", file=sys.stderr)
        return EXIT_INTERRUPTED


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()

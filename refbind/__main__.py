import argparse
import json
import sys

from refbind import logging as refbind_logging
from refbind import utils
from refbind.bind import Binder
from refbind.emit import EMITTERS, Generator
from refbind.errors import ClassificationError, ManifestError


def add_common_arguments(parser):
    parser.add_argument(
        'manifests',
        nargs='+',
        help='JSON manifests describing the packages to bind'
    )

    parser.add_argument(
        '--config',
        '-c',
        type=str,
        dest='config_file',
        help='The configuration file to use'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        type=str.upper,
        help='Override the console log level from the configuration'
    )

    parser.add_argument(
        '--log-dir',
        type=str,
        help='Write text (and jsonl, if enabled) log files to this directory'
    )

    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored console output'
    )


def parse_gen(parser):
    add_common_arguments(parser)

    parser.add_argument(
        '--output-dir',
        '-o',
        type=str,
        help='The directory to write generated files to, default to [generate].output_dir'
    )

    parser.add_argument(
        '--emit',
        type=str,
        help=f'Comma separated emitters to run ({",".join(EMITTERS)}), default to [generate].emit'
    )


def parse_describe(parser):
    add_common_arguments(parser)


def _setup(parser, args, quiet=False, output_dir=None):
    try:
        config = utils.try_load_config(args.config_file)
    except FileNotFoundError as e:
        parser.error(str(e))
    refbind_logging.configure_logging(
        config,
        output_dir=output_dir or config["generate"]["output_dir"],
        console_level_override=args.log_level or ("WARNING" if quiet else None),
        log_dir_override=args.log_dir,
        disable_color=args.no_color,
    )
    return config


def _bind(config, manifests) -> Binder:
    binder = Binder(config)
    try:
        binder.load(manifests)
    except (ClassificationError, ManifestError) as e:
        print(f'❌ {e}', file=sys.stderr)
        sys.exit(1)
    except FileNotFoundError as e:
        print(f'❌ Cannot read manifest: {e}', file=sys.stderr)
        sys.exit(1)
    return binder


def gen(parser, args):
    emit = None
    if args.emit:
        emit = [name.strip() for name in args.emit.split(',') if name.strip()]
        unknown = [name for name in emit if name not in EMITTERS]
        if unknown:
            parser.error(f'Unknown emitter(s): {", ".join(unknown)}')

    config = _setup(parser, args, output_dir=args.output_dir)
    output_dir = args.output_dir or config["generate"]["output_dir"]
    binder = _bind(config, args.manifests)
    generator = Generator(config, emit=emit)
    written = generator.generate(binder, output_dir)
    print(f'✅ Generated {len(written)} file(s) in {output_dir}')
    sys.exit(0)


def describe(parser, args):
    # stdout carries the JSON document
    config = _setup(parser, args, quiet=True)
    binder = _bind(config, args.manifests)
    print(json.dumps(binder.describe(), indent=2, sort_keys=True))
    sys.exit(0)


def main():
    parser = argparse.ArgumentParser(
        description='refbind: bindings from a garbage-collected module to a reference-counted host'
    )

    subparsers = parser.add_subparsers(
        dest='subcommand',
        description='valid subcommands for refbind',
        help='Use one of these subcommands followed by -h for additional help',
        required=True
    )

    gen_parser = subparsers.add_parser(
        'gen',
        help='Generate the C header and host wrappers for the given manifests'
    )

    describe_parser = subparsers.add_parser(
        'describe',
        help='Print the bound model as JSON'
    )

    parse_gen(gen_parser)
    parse_describe(describe_parser)

    args = parser.parse_args()

    match args.subcommand:
        case 'gen':
            gen(parser, args)
        case 'describe':
            describe(parser, args)
        case _:
            parser.print_help()


if __name__ == '__main__':
    main()

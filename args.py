import argparse

from pybtcnet import mainctx, regtestctx, signetctx, testctx


def add_network_switcher_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument('-t', '--test', action='store_true', default=False,
                       help='use test network')
    group.add_argument('-s', '--signet', action='store_true', default=False,
                       help='use signet')
    group.add_argument('-r', '--regtest', action='store_true', default=False,
                       help='use regression test network')


def ctx_from_args(args: argparse.Namespace) -> dict:
    ctx = mainctx
    if args.test: ctx = testctx
    if args.signet: ctx = signetctx
    if args.regtest: ctx = regtestctx
    return ctx

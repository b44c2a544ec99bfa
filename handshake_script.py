#!/usr/bin/env python3

import argparse
import sys
import time

import _logger
import jsonencoder
from args import add_network_switcher_args, ctx_from_args
from exceptions import XbtLibException
from msg_handshake import DEFAULT_USER_AGENT, handshake_config, perform_handshake
from net import get_connected_socket_endpoint, get_random_seed_peer, parse_endpoint, socket_transport
from peer import net_addr


logger = _logger.get_logger()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='perform a version/verack handshake with one peer')
    add_network_switcher_args(parser)

    parser.add_argument('-p', '--peer',
                        help='peer to handshake with (if not set, one is randomly selected using DNS seeds)')
    parser.add_argument('-v', '--verbosity', type=int, default=0,
                        help='verbosity level')
    parser.add_argument('--logfile', type=str, default=None,
                        help='also write the log to <logfile>.log')
    parser.add_argument('--timeout', type=float, default=10.0,
                        help='seconds to wait for each read from the peer')
    parser.add_argument('--deadline', type=float, default=30.0,
                        help='seconds allowed for the whole handshake')
    parser.add_argument('--user-agent', type=str, default=DEFAULT_USER_AGENT,
                        help='user agent to advertise')
    parser.add_argument('--start-height', type=int, default=0,
                        help='best block height to advertise')
    parser.add_argument('-l', '--listen', type=str, default='127.0.0.1',
                        help='address of this machine to advertise in the version message')
    parser.add_argument('--listen-port', type=int, default=None,
                        help='port to advertise (defaults to the network port)')
    parser.add_argument('--min-peer-version', type=int, default=0,
                        help='reject peers advertising a lower protocol version (0 disables the check)')
    parser.add_argument('--json', action='store_true', default=False,
                        help='print the version message of the peer as json')

    return parser.parse_args(argv)


def do_handshake(ctx: dict, peeraddr: str, peerport: int, config: handshake_config):
    sock = get_connected_socket_endpoint(peeraddr, peerport, timeout=config.read_timeout)
    deadline = time.monotonic() + config.deadline
    with socket_transport(sock, config.read_timeout, deadline) as transport:
        ip, port = transport.peer_endpoint()
        peer_address = net_addr.from_endpoint(ip, port)
        return perform_handshake(ctx, transport, peer_address, config)


def main(argv=None) -> int:
    args = parse_args(argv)
    _logger.setup_logger(logger, _logger.get_logging_level_from_int(args.verbosity), args.logfile)

    ctx = ctx_from_args(args)

    try:
        config = handshake_config(user_agent=args.user_agent,
                                  start_height=args.start_height,
                                  local_address=args.listen,
                                  local_port=args.listen_port,
                                  read_timeout=args.timeout,
                                  deadline=args.deadline,
                                  min_peer_version=args.min_peer_version)

        if args.peer is not None:
            peeraddr, peerport = parse_endpoint(args.peer, default_port=ctx['peerport'])
        else:
            peeraddr, peerport = get_random_seed_peer(ctx)

        print('Connecting to %s:%s (%s network)' % (peeraddr, peerport, ctx['name']))
        peer_version = do_handshake(ctx, peeraddr, peerport, config)
    except (OSError, XbtLibException) as e:
        print('Handshake failed: %s: %s' % (type(e).__name__, e))
        return 1

    if args.json:
        print(jsonencoder.to_json(peer_version))
    else:
        print(peer_version)
    print('Handshake successful')
    return 0


if __name__ == "__main__":
    sys.exit(main())

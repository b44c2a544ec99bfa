import json

from common import hexlify
from msg_version import version_payload
from peer import ip_addr, net_addr
from pybtcnet import network_magic


class XbtJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, bytes):
            return hexlify(obj)
        if isinstance(obj, ip_addr):
            return str(obj)
        if isinstance(obj, network_magic):
            return str(obj)
        if isinstance(obj, net_addr):
            return obj.__dict__
        if isinstance(obj, version_payload):
            # a user agent that is not valid utf-8 falls back to hex
            fields = dict(obj.__dict__)
            try:
                fields['user_agent'] = obj.user_agent.decode('utf-8')
            except UnicodeDecodeError:
                pass
            return fields

        return json.JSONEncoder.default(self, obj)


def to_json(obj) -> str:
    return json.dumps(obj, cls=XbtJSONEncoder, indent=4)

import json

import pytest
from cryptography.fernet import Fernet, InvalidToken

from kvstore_lib.storage.serializer import (
    EncryptedSerializer,
    JSONSerializer,
    YAMLSerializer,
    create_serializer,
)


def test_json_serializer_produces_text():
    s = JSONSerializer()
    out = s.dump({'a': [1, 2]})
    assert isinstance(out, str)
    assert json.loads(out) == {'a': [1, 2]}
    assert s.load(out.encode('utf-8')) == {'a': [1, 2]}


def test_json_serializer_handles_plain_objects():
    class Point:
        def __init__(self):
            self.x, self.y = 1, 2

    assert json.loads(JSONSerializer().dump(Point())) == {'x': 1, 'y': 2}


def test_yaml_serializer():
    s = YAMLSerializer()
    out = s.dump({'name': 'kv', 'tags': ['a']})
    assert 'name: kv' in out
    assert s.load(out) == {'name': 'kv', 'tags': ['a']}


def test_encrypted_serializer_with_key():
    key = Fernet.generate_key()
    s = EncryptedSerializer(key=key)
    frame = json.loads(s.dump({'secret': 1}))
    assert frame['mode'] == 'key'
    assert s.load(json.dumps(frame)) == {'secret': 1}
    # a different key cannot read it
    with pytest.raises(InvalidToken):
        EncryptedSerializer(key=Fernet.generate_key()).load(json.dumps(frame))


def test_encrypted_serializer_with_password_salts_each_payload():
    s = EncryptedSerializer(password='pw', iterations=1000)
    a, b = s.dump('same'), s.dump('same')
    assert a != b
    assert json.loads(a)['mode'] == 'password'
    assert s.load(a) == s.load(b) == 'same'


def test_encrypted_serializer_needs_secret():
    with pytest.raises(ValueError):
        EncryptedSerializer()
    with pytest.raises(ValueError):
        EncryptedSerializer(password='pw').load(json.dumps({'mode': 'bogus'}))


def test_create_serializer():
    assert isinstance(create_serializer('json'), JSONSerializer)
    assert isinstance(create_serializer('yaml'), YAMLSerializer)
    assert isinstance(create_serializer('encrypted', password='pw'), EncryptedSerializer)
    with pytest.raises(ValueError):
        create_serializer('pickle')

import os

import dslink
import dslink.json
import dslink.serializer

from conftest import FakeRuntime


def build(manager):
    root = manager.create_root('plant')
    root.set_display_name('Plant')
    root.add_interface('site')
    root.set_attribute('location', 'north')

    pump = root.create_child('pump') \
        .set_profile('pump') \
        .set_value_type('number') \
        .set_value(12.5) \
        .set_writable('config') \
        .set_password('secret') \
        .add_mixin('rotating') \
        .set_config('rate', 3) \
        .set_ro_config('serial', 'A-1') \
        .set_attribute('unit', 'rpm') \
        .build()

    pump.create_child('status').set_value('ok').build()
    root.create_child('typed').set_value_type('bool').build()
    root.create_child('volatile').set_serializable(False).set_value(1).build()

    manager.create_root('scratch').set_serializable(False)
    return root


def test_serialize():
    manager = dslink.NodeManager()
    build(manager)

    document = dslink.serializer.Serializer(manager).serialize()

    assert list(document) == ['plant']

    plant = document['plant']
    assert plant['$name'] == 'Plant'
    assert plant['$interface'] == 'site'
    assert plant['@location'] == 'north'
    assert 'volatile' not in plant

    pump = plant['pump']
    assert list(pump)[:7] == ['$mixin', '$is', '$type', '?value', '$$password', '$writable', '$$serial']
    assert pump['$is'] == 'pump'
    assert pump['$type'] == 'number'
    assert pump['?value'] == 12.5
    assert pump['$$password'] == 'secret'
    assert pump['$writable'] == 'config'
    assert pump['$rate'] == 3
    assert pump['@unit'] == 'rpm'
    assert pump['status'] == {'$type': 'string', '?value': 'ok'}

    # A declared type without a value has no ?value key.

    assert plant['typed'] == {'$type': 'bool'}


def compare(left, right):
    assert left.name == right.name
    assert left.display_name == right.display_name
    assert left.profile == right.profile
    assert left.value_type == right.value_type
    assert left.value == right.value
    assert left.writable == right.writable
    assert left.password == right.password
    assert left.interfaces == right.interfaces
    assert left.mixins == right.mixins
    assert left.configurations == right.configurations
    assert left.ro_configurations == right.ro_configurations
    assert left.attributes == right.attributes

    serializable = [name for name, child in left.children.items() if child.serializable]
    assert sorted(serializable) == sorted(right.children)

    for name in serializable:
        compare(left.children[name], right.children[name])


def test_round_trip():
    original = dslink.NodeManager()
    root = build(original)

    document = dslink.serializer.Serializer(original).serialize()
    document = dslink.json.loads(dslink.json.dumps(document))

    restored = dslink.NodeManager()
    dslink.serializer.Serializer(restored).deserialize(document)

    assert sorted(restored.get_roots()) == ['plant']
    compare(root, restored.get_roots()['plant'])


def test_deserialize_existing():
    manager = dslink.NodeManager()
    existing = manager.create_root('plant')

    dslink.serializer.Serializer(manager).deserialize({'plant': {'$name': 'Restored', 'child': {}}})

    assert manager.get_roots()['plant'] is existing
    assert existing.display_name == 'Restored'
    assert existing.has_child('child')


def test_deserialize_bad_value():
    manager = dslink.NodeManager()

    document = {'plant': {'$type': 'number', '?value': 'not a number', 'junk': 5}}
    dslink.serializer.Serializer(manager).deserialize(document)

    node = manager.get_roots()['plant']
    assert node.value_type == dslink.ValueType.NUMBER
    assert node.value is None
    assert node.has_child('junk') == False


def test_manager(tmp_path):
    path = str(tmp_path / 'nodes.json')
    runtime = FakeRuntime()

    manager = dslink.NodeManager()
    build(manager)

    serialization = dslink.serializer.SerializationManager(manager, path, runtime, interval=2)
    serialization.start()
    assert runtime.periodic_calls[0].delay == 2

    # Nothing is written until the periodic flush runs.

    assert os.path.exists(path) == False
    runtime.periodic_calls[0].fire()
    assert os.path.exists(path)
    assert manager.changed.is_set() == False

    # An unchanged tree is not rewritten.

    assert serialization.flush() == False

    manager.get_node('/plant/pump').node.set_value(20)
    assert serialization.flush() == True
    assert os.path.exists(path + '.bak')
    assert os.path.exists(path + '.tmp') == False

    restored = dslink.NodeManager()
    loader = dslink.serializer.SerializationManager(restored, path)
    assert loader.load() == True
    assert restored.get_node('/plant/pump').node.value.value == 20
    assert restored.changed.is_set() == False

    serialization.stop()
    assert runtime.periodic_calls[0].cancelled == True


def test_backup_fallback(tmp_path):
    path = str(tmp_path / 'nodes.json')

    with open(path + '.bak', 'w') as handle:
        handle.write('{"plant": {"$name": "From backup"}}')

    with open(path, 'w') as handle:
        handle.write('{"plant": ')

    manager = dslink.NodeManager()
    loader = dslink.serializer.SerializationManager(manager, path)

    assert loader.load() == True
    assert manager.get_roots()['plant'].display_name == 'From backup'


def test_nothing_to_load(tmp_path):
    manager = dslink.NodeManager()
    loader = dslink.serializer.SerializationManager(manager, str(tmp_path / 'nodes.json'))

    assert loader.load() == False
    assert manager.get_roots() == dict()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

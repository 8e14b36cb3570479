import types

import pytest

from refbind.bridge import CallBridge, HandleTable
from refbind.errors import BridgeCorruptionError, ManagedCallError
from tests.utils import bind, person_manifest


class Person:
    def __init__(self, name="", age=0):
        self.Name = name
        self.Age = age

    def Greet(self):
        return f"hello, {self.Name}"

    def Work(self, hours):
        if hours > 8:
            return ValueError("too many hours")
        return None

    def Salary(self, base):
        if base < 0:
            return 0.0, "negative base"
        return base * 2, None


@pytest.fixture
def model():
    pkg = bind(person_manifest()).packages[0]
    person = next(t for t in pkg.types if t.name == "Person")
    return pkg, person


@pytest.fixture
def bridge():
    return CallBridge(HandleTable())


def _method(person, name):
    return next(m for m in person.methods if m.name == name)


def test_constructor_result_is_acquired_once(model, bridge):
    _, person = model
    ctor = person.ctors[0]
    handle = bridge.invoke(ctor, lambda n, a: (Person(n, a), None), "Ann", 30)
    assert handle < 0
    assert bridge.table.count(handle) == 1
    assert bridge.table.resolve(handle).Name == "Ann"

    bridge.release_proxy(handle)
    assert len(bridge.table) == 0


def test_constructor_failure_raises_runtime_error(model, bridge):
    _, person = model
    ctor = person.ctors[0]
    cause = ValueError("invalid age")
    with pytest.raises(RuntimeError, match="invalid age") as excinfo:
        bridge.invoke(ctor, lambda n, a: (None, cause), "Ann", -1)
    assert isinstance(excinfo.value, ManagedCallError)
    assert excinfo.value.func_id == "hi_NewPerson"
    assert excinfo.value.__cause__ is cause
    assert len(bridge.table) == 0


def test_method_receiver_is_resolved(model, bridge):
    _, person = model
    handle = bridge.table.acquire(Person("Bob", 40))
    greet = _method(person, "Greet")
    assert bridge.invoke(greet, Person.Greet, handle) == "hello, Bob"


def test_error_only_method(model, bridge):
    _, person = model
    handle = bridge.table.acquire(Person("Bob", 40))
    work = _method(person, "Work")
    assert bridge.invoke(work, Person.Work, handle, 4) is None
    with pytest.raises(ManagedCallError, match="too many hours"):
        bridge.invoke(work, Person.Work, handle, 12)


def test_value_and_error_with_text_indicator(model, bridge):
    _, person = model
    handle = bridge.table.acquire(Person("Bob", 40))
    salary = _method(person, "Salary")
    assert bridge.invoke(salary, Person.Salary, handle, 10.0) == 20.0
    with pytest.raises(ManagedCallError, match="negative base") as excinfo:
        bridge.invoke(salary, Person.Salary, handle, -1.0)
    assert excinfo.value.__cause__ is None


def test_argument_count_is_checked(model, bridge):
    pkg, _ = model
    add = next(f for f in pkg.funcs if f.name == "Add")
    assert bridge.invoke(add, lambda i, j: i + j, 2, 3) == 5
    with pytest.raises(TypeError, match="takes 2 argument"):
        bridge.invoke(add, lambda i, j: i + j, 2)


def test_stale_handle_argument_is_fatal(model, bridge):
    _, person = model
    greet = _method(person, "Greet")
    with pytest.raises(BridgeCorruptionError):
        bridge.invoke(greet, Person.Greet, -12345)


def test_struct_fields(model, bridge):
    _, person = model
    obj = Person("Cid", 20)
    handle = bridge.table.acquire(obj)
    name, age = person.fields
    assert bridge.get_field(name, handle) == "Cid"
    bridge.set_field(age, handle, 21)
    assert obj.Age == 21


def test_package_values(model, bridge):
    pkg, _ = model
    registry = {"ann": Person("Ann", 30)}
    namespace = types.SimpleNamespace(Version="1.0", Population=3, Registry=registry)
    version = next(c for c in pkg.consts if c.name == "Version")
    population, registry_var = pkg.vars

    assert bridge.get_value(version, namespace) == "1.0"
    bridge.set_value(population, namespace, 4)
    assert namespace.Population == 4

    # a wrapped variable comes back as a handle
    handle = bridge.get_value(registry_var, namespace)
    assert bridge.table.resolve(handle) is registry
    new_registry = {}
    bridge.set_value(registry_var, namespace, bridge.table.acquire(new_registry))
    assert namespace.Registry is new_registry


@pytest.fixture
def containers():
    data = person_manifest()
    data["vars"].append({"name": "Names", "type": "[]string"})
    data["vars"].append({"name": "Hook", "type": "func(hours int) (float64, error)"})
    pkg = bind(data).packages[0]
    return {t.name: t for t in pkg.types}


def test_slice_entries_mutate_in_place(containers, bridge):
    names = containers["Slice_string"]
    backing = ["ann"]
    handle = bridge.table.acquire(backing)

    bridge.append(names, handle, "bob")
    bridge.set_item(names, handle, 0, "cy")

    assert bridge.length(names, handle) == 2
    assert bridge.get_item(names, handle, 1) == "bob"
    assert backing == ["cy", "bob"]
    with pytest.raises(IndexError):
        bridge.get_item(names, handle, 5)


def test_map_entries_cross_wrapped_values(containers, bridge):
    registry = containers["Map_string_ptr_hi_Person"]
    backing = {}
    handle = bridge.table.acquire(backing)
    ann = bridge.table.acquire(Person("Ann", 30))

    bridge.set_item(registry, handle, "ann", ann)
    assert backing["ann"].Name == "Ann"
    assert bridge.length(registry, handle) == 1

    item = bridge.get_item(registry, handle, "ann")
    assert item < 0
    assert bridge.table.resolve(item) is backing["ann"]


def test_function_value_call(containers, bridge):
    hook = next(t for name, t in containers.items() if name.startswith("Func_"))

    def pay(hours):
        if hours < 0:
            return 0.0, "negative hours"
        return hours * 1.5, None

    handle = bridge.table.acquire(pay)
    assert bridge.call(hook, handle, 4) == 6.0
    with pytest.raises(ManagedCallError, match="negative hours") as excinfo:
        bridge.call(hook, handle, -1)
    assert excinfo.value.func_id == f"{hook.id}_call"


def test_missing_entry_point(containers, bridge):
    registry = containers["Map_string_ptr_hi_Person"]
    handle = bridge.table.acquire({})
    with pytest.raises(TypeError, match="Map_string_ptr_hi_Person has no append entry point"):
        bridge.append(registry, handle, "x")
    with pytest.raises(TypeError, match="Person has no call entry point"):
        bridge.call(containers["Person"], handle)

import pytest

from refbind.bind.package import Struct
from refbind.bind.symtab import Protocol
from refbind.data_types import EntityKind
from refbind.errors import ClassificationError
from tests.utils import bind, manifest, person_manifest


def _package(*manifests):
    return bind(*manifests).packages[0]


def _type(pkg, name):
    (t,) = [t for t in pkg.types if t.name == name]
    return t


def test_person_end_to_end():
    pkg = _package(person_manifest())
    person = _type(pkg, "Person")

    assert isinstance(person, Struct)
    assert person.sym.needs_wrap

    assert [c.name for c in person.ctors] == ["NewPerson"]
    ctor = person.ctors[0]
    assert ctor.ctor
    assert ctor.err
    assert ctor.ret.sym is person.sym
    assert ctor.doc == "NewPerson creates a new Person value."
    assert "NewPerson" not in [f.name for f in pkg.funcs]

    methods = {m.name: m for m in person.methods}
    assert list(methods) == ["Greet", "Salary", "String", "Work"]
    greet = methods["Greet"]
    assert greet.params == ()
    assert greet.ret.sym.id == "string"
    assert not greet.err
    assert not greet.stringer
    assert methods["String"].stringer
    assert person.protocols & Protocol.STRINGER
    assert methods["Work"].err and methods["Work"].ret is None
    assert methods["Salary"].err and methods["Salary"].ret.sym.id == "float64"
    assert greet.doc == "Greet returns a greeting."


def test_greet_named_string_is_stringer():
    data = manifest(
        path="example.com/hi", name="hi",
        types=[{"name": "Person", "type": "struct { Name string; Age int }",
                "methods": [{"name": "String", "signature": "func() string"}]}],
        funcs=[{"name": "NewPerson", "signature": "func(n string, a int) (Person, error)"}],
    )
    pkg = _package(data)
    assert [t.name for t in pkg.types] == ["Person"]
    (person,) = pkg.types
    assert len(person.ctors) == 1
    assert person.methods[0].stringer
    assert pkg.funcs == ()


def test_struct_fields_and_pseudo_funcs():
    pkg = _package(person_manifest())
    person = _type(pkg, "Person")
    assert [(f.name, f.sym.id, f.index) for f in person.fields] == [("Name", "string", 0), ("Age", "int", 1)]
    assert person.new.id == "hi_Person_new"
    assert person.str.id == "hi_Person_str"
    assert person.new.generated
    assert person.fields[0].getter.id == "hi_Person_Name_get"
    assert person.fields[1].setter.id == "hi_Person_Age_set"


def test_named_basic_type_crosses_by_value():
    data = person_manifest()
    data["types"][1]["methods"] = [{"name": "String", "signature": "func() string"}]
    pkg = _package(data)
    celsius = _type(pkg, "Celsius")
    assert celsius.by_value
    assert celsius.new is None and celsius.str is None
    assert [m.id for m in celsius.methods] == ["hi_Celsius_String"]
    assert list(celsius.funcs()) == list(celsius.methods)


def test_free_functions_consts_and_vars():
    pkg = _package(person_manifest())
    assert [f.name for f in pkg.funcs] == ["Add", "Fail", "Hello", "Hi"]
    assert [(c.id, c.value) for c in pkg.consts] == [("hi_MaxAge", 150), ("hi_Version", "1.0")]
    assert pkg.consts[1].doc == "Version of the API."
    assert pkg.consts[0].getter.id == "hi_MaxAge_get"
    registry = pkg.vars[1]
    assert registry.id == "hi_Registry"
    assert (registry.getter.id, registry.setter.id) == ("hi_Registry_get", "hi_Registry_set")
    assert registry.sym.id == "Map_string_ptr_hi_Person"


def test_unnamed_composites_become_types():
    pkg = _package(person_manifest())
    assert [t.name for t in pkg.types] == ["Celsius", "Map_string_ptr_hi_Person", "Person"]
    registry_type = _type(pkg, "Map_string_ptr_hi_Person")
    assert registry_type.new.id == "Map_string_ptr_hi_Person_new"


def test_entity_order():
    pkg = _package(person_manifest())
    order = [(kind, getattr(item, "name", None)) for kind, item in pkg.entities()]
    assert order == [
        (EntityKind.TYPE, "Celsius"),
        (EntityKind.TYPE, "Map_string_ptr_hi_Person"),
        (EntityKind.STRUCT, "Person"),
        (EntityKind.CONSTRUCTOR, "NewPerson"),
        (EntityKind.FUNCTION, "Add"),
        (EntityKind.FUNCTION, "Fail"),
        (EntityKind.FUNCTION, "Hello"),
        (EntityKind.FUNCTION, "Hi"),
        (EntityKind.CONSTANT, "MaxAge"),
        (EntityKind.CONSTANT, "Version"),
        (EntityKind.VARIABLE, "Population"),
        (EntityKind.VARIABLE, "Registry"),
    ]
    ids = [f.id for f in pkg.all_funcs()]
    assert ids.index("hi_Person_new") < ids.index("hi_NewPerson") < ids.index("hi_Add")
    assert ids[-2:] == ["hi_Registry_get", "hi_Registry_set"]


def test_constructor_declared_before_type_and_pointer_result():
    data = manifest(
        funcs=[{"name": "NewThing", "signature": "func() *Thing"}],
        types=[{"name": "Thing", "type": "struct { ID int }"}],
    )
    pkg = _package(data)
    (thing,) = pkg.types
    assert [c.name for c in thing.ctors] == ["NewThing"]
    assert pkg.funcs == ()


def test_not_constructors():
    base = manifest(path="example.com/base", name="base", types=[{"name": "ID", "type": "struct { V int }"}])
    data = manifest(
        types=[{"name": "Thing", "type": "struct { ID int }"}],
        funcs=[
            {"name": "ForeignID", "signature": "func() base.ID"},
            {"name": "Count", "signature": "func() (int, error)"},
            {"name": "Things", "signature": "func() []Thing"},
        ],
    )
    binder = bind(base, data)
    pkg = binder.packages[1]
    assert [f.name for f in pkg.funcs] == ["Count", "ForeignID", "Things"]
    assert _type(pkg, "Thing").ctors == ()


def test_ambiguous_constructors():
    data = manifest(
        types=[{"name": "A", "type": "struct { N int }"}],
        funcs=[
            {"name": "NewA", "signature": "func(n int) A"},
            {"name": "MakeA", "signature": "func(m int) (*A, error)"},
        ],
    )
    with pytest.raises(ClassificationError, match="ambiguous constructors NewA and MakeA for type A") as excinfo:
        _package(data)
    assert excinfo.value.decl == "example.com/pkg.MakeA"


def test_constructors_with_distinct_parameters():
    data = manifest(
        types=[{"name": "A", "type": "struct { N int }"}],
        funcs=[
            {"name": "NewA", "signature": "func(n int) A"},
            {"name": "ParseA", "signature": "func(s string) (A, error)"},
        ],
    )
    (a,) = _package(data).types
    assert [c.name for c in a.ctors] == ["NewA", "ParseA"]


def test_empty_package():
    pkg = _package(manifest())
    assert pkg.entities() == []
    assert pkg.all_funcs() == []


def test_result_arity_aborts_package():
    data = manifest(funcs=[{"name": "Triple", "signature": "func() (int, int, error)"}])
    with pytest.raises(ClassificationError, match="too many results"):
        _package(data)


def test_constants_must_be_basic():
    data = manifest(consts=[{"name": "Bad", "type": "[]int"}])
    with pytest.raises(ClassificationError, match="constants must have a basic type"):
        _package(data)


def test_method_result_composites_become_types():
    data = manifest(types=[{"name": "Person", "type": "struct { Name string }",
                            "methods": [{"name": "Tags", "signature": "func() func() []string"}]}])
    pkg = _package(data)
    names = [t.name for t in pkg.types]
    assert "Slice_string" in names
    (func_type,) = [t for t in pkg.types if t.name.startswith("Func_")]
    assert func_type.call.ret.sym.id == "Slice_string"
    assert [m.name for m in _type(pkg, "Person").methods] == ["Tags"]


def test_composite_reached_from_two_methods_is_bound_once():
    data = manifest(types=[
        {"name": "A", "type": "struct { N int }", "methods": [{"name": "Tags", "signature": "func() []string"}]},
        {"name": "B", "type": "struct { N int }",
         "methods": [{"name": "SetTags", "signature": "func(tags []string)"}]},
    ])
    pkg = _package(data)
    assert [t.name for t in pkg.types] == ["A", "B", "Slice_string"]


def test_method_composite_claimed_by_first_package():
    first = manifest(path="example.com/a", name="a",
                     types=[{"name": "A", "type": "struct { N int }",
                             "methods": [{"name": "Tags", "signature": "func() []string"}]}])
    second = manifest(path="example.com/b", name="b",
                      types=[{"name": "B", "type": "struct { N int }",
                              "methods": [{"name": "Tags", "signature": "func() []string"}]}])
    a, b = bind(first, second).packages
    assert [t.name for t in a.types] == ["A", "Slice_string"]
    assert [t.name for t in b.types] == ["B"]


def test_map_type_entry_points():
    registry = _type(_package(person_manifest()), "Map_string_ptr_hi_Person")
    assert registry.len.id == "Map_string_ptr_hi_Person_len"
    assert registry.len.ret.sym.id == "int"
    assert [(p.name, p.sym.id) for p in registry.item.params] == [
        ("self", "Map_string_ptr_hi_Person"), ("key", "string")]
    assert registry.item.ret.sym.id == "ptr_hi_Person"
    assert [p.name for p in registry.set_item.params] == ["self", "key", "value"]
    assert registry.set_item.ret is None
    assert registry.append is None and registry.call is None
    assert [f.name for f in registry.funcs()] == ["new", "str", "len", "item", "set_item"]


def test_slice_and_array_entry_points():
    data = manifest(vars=[{"name": "Names", "type": "[]string"}, {"name": "Grid", "type": "[4]int"}])
    pkg = _package(data)
    names = _type(pkg, "Slice_string")
    assert [p.name for p in names.item.params] == ["self", "index"]
    assert names.item.params[1].sym.id == "int"
    assert names.append.id == "Slice_string_append"
    assert [p.sym.id for p in names.append.params] == ["Slice_string", "string"]

    grid = _type(pkg, "Array_4_int")
    assert grid.set_item.id == "Array_4_int_set_item"
    assert grid.append is None


def test_function_type_call_entry():
    data = manifest(vars=[{"name": "Hook", "type": "func(n int, s string) (bool, error)"}])
    (hook,) = _package(data).types
    call = hook.call
    assert call.id == f"{hook.id}_call"
    assert [p.name for p in call.params] == ["self", "arg0", "arg1"]
    assert [p.sym.id for p in call.params[1:]] == ["int", "string"]
    assert call.ret.sym.id == "bool"
    assert call.err
    assert hook.len is None and hook.item is None


def test_function_type_with_unconventional_results_is_not_callable():
    data = manifest(vars=[{"name": "Pair", "type": "func() (int, string)"}])
    (pair,) = _package(data).types
    assert pair.call is None
    assert pair.new is not None

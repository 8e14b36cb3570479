import json
import logging

import pytest

from refbind.bind import Binder
from refbind.errors import ClassificationError, ManifestError
from tests.utils import bind, config, manifest, person_manifest, write_manifest


def test_load_from_files(tmp_path, config):
    path = write_manifest(tmp_path, person_manifest())
    binder = Binder(config)
    packages = binder.load([path])
    assert [p.path for p in packages] == ["example.com/hi"]
    assert binder.packages == packages
    assert binder.table.by_id("hi_Person") is not None


def test_binders_do_not_share_state():
    first = bind(person_manifest())
    second = bind(manifest())
    assert first.table is not second.table
    assert second.table.by_id("hi_Person") is None
    assert len(second.packages[0].types) == 0


def test_library_name(config):
    assert bind(person_manifest()).library_name == "hi"
    config["generate"]["library_name"] = "people"
    assert bind(person_manifest(), config=config).library_name == "people"


def test_classification_error_is_logged_and_raised(caplog):
    data = manifest(funcs=[{"name": "Pair", "signature": "func() (int, string)"}])
    with caplog.at_level(logging.ERROR, logger="refbind"):
        with pytest.raises(ClassificationError):
            bind(data)
    assert any("example.com/pkg.Pair" in r.getMessage() for r in caplog.records)


def test_invalid_manifest_file(tmp_path, config):
    path = write_manifest(tmp_path, {"path": "x", "name": "bad name"})
    with pytest.raises(ManifestError):
        Binder(config).load([path])


def test_describe_is_json_serialisable():
    description = bind(person_manifest()).describe()
    json.dumps(description)
    assert description["library"] == "hi"
    (pkg,) = description["packages"]
    person = next(t for t in pkg["types"] if t["name"] == "Person")
    assert person["ctors"] == ["hi_NewPerson"]
    assert person["methods"] == ["hi_Person_Greet", "hi_Person_Salary", "hi_Person_String", "hi_Person_Work"]
    assert person["fields"][0] == {"name": "Name", "type": "string", "index": 0}
    registry = next(t for t in pkg["types"] if t["name"] == "Map_string_ptr_hi_Person")
    assert registry["generated"] == [
        "Map_string_ptr_hi_Person_new", "Map_string_ptr_hi_Person_str", "Map_string_ptr_hi_Person_len",
        "Map_string_ptr_hi_Person_item", "Map_string_ptr_hi_Person_set_item",
    ]
    symbols = {s["id"]: s for s in description["symbols"]}
    assert symbols["hi_Person"]["kind"] == ["named", "struct"]
    assert symbols["hi_Person"]["needs_wrap"] is True
    assert symbols["hi_Person"]["protocols"] == ["stringer"]
    assert symbols["hi_Celsius"]["needs_wrap"] is False


def test_describe_is_deterministic():
    assert bind(person_manifest()).describe() == bind(person_manifest()).describe()

import copy
import json
import logging

import pytest

from refbind import logging as refbind_logging
from refbind.bind import Binder
from refbind.decl.manifest import ManifestLoader
from refbind.utils import load_default_config

PERSON_MANIFEST = {
    "path": "example.com/hi",
    "name": "hi",
    "doc": "Package hi exposes a tiny greeting API.",
    "types": [
        {
            "name": "Person",
            "doc": "Person is a simple person.",
            "type": "struct { Name string; Age int; secret string }",
            "methods": [
                {"name": "Greet", "doc": "Greet returns a greeting.", "signature": "func() string"},
                {"name": "String", "doc": "String describes p.", "signature": "func() string"},
                {"name": "Work", "doc": "Work makes a Person go to work.",
                 "signature": "func(hours int) error", "pointer_receiver": True},
                {"name": "Salary", "signature": "func(base float64) (float64, error)",
                 "pointer_receiver": True},
                {"name": "rename", "signature": "func(name string)"},
            ],
        },
        {
            "name": "Celsius",
            "doc": "Celsius is a temperature.",
            "type": "float64",
        },
    ],
    "funcs": [
        {"name": "NewPerson", "doc": "NewPerson creates a new Person value.",
         "signature": "func(n string, a int) (Person, error)"},
        {"name": "Hi", "doc": "Hi prints hi.", "signature": "func()"},
        {"name": "Hello", "signature": "func(s string) string"},
        {"name": "Add", "signature": "func(i, j int) int"},
        {"name": "Fail", "signature": "func() error"},
        {"name": "helper", "signature": "func()"},
    ],
    "consts": [
        {"name": "Version", "type": "string", "value": "1.0", "doc": "Version of the API."},
        {"name": "MaxAge", "type": "int", "value": 150},
    ],
    "vars": [
        {"name": "Population", "type": "int"},
        {"name": "Registry", "type": "map[string]*Person"},
    ],
}


def person_manifest():
    return copy.deepcopy(PERSON_MANIFEST)


def manifest(path="example.com/pkg", name="pkg", **sections):
    data = {"path": path, "name": name}
    data.update(sections)
    return data


def load(*manifests):
    loader = ManifestLoader()
    for data in manifests:
        loader.add(data)
    return loader.load()


def bind(*manifests, config=None):
    binder = Binder(config if config is not None else load_default_config())
    binder.bind(load(*manifests))
    return binder


def write_manifest(directory, data, filename=None):
    path = directory / (filename or f"{data['name']}.json")
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def config():
    return load_default_config()


@pytest.fixture
def clean_logging():
    yield
    logger = refbind_logging.get_logger()
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    refbind_logging._state = None

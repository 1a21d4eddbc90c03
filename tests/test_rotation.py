import pytest

from agepad.crypto import ARMOR_HEADER
from agepad.rotation import RotationJob
from agepad.utils import DecryptError


@pytest.fixture()
def tree(tmp_path, encrypt, alice, bob):
    root = tmp_path / 'secrets'
    (root / 'nested').mkdir(parents=True)
    files = {
        'a.env.age': [alice.recipient],
        'b.json.age': [alice.recipient],
        'nested/c.AGE': [alice.recipient],
        'nested/d.age': [bob.recipient],
        'e.age': [bob.recipient],
    }
    for name, recipients in files.items():
        encrypt(root / name, f"{name}\n", armour=False, recipients=recipients)
    (root / 'notes.txt').write_text("not encrypted")
    return root


def test_search(tree, alice, carol):
    job = RotationJob(root=tree, identities=[alice.identity], new_recipients=[carol.recipient])
    assert [p.relative_to(tree).as_posix() for p in job.search()] == [
        'a.env.age', 'b.json.age', 'e.age', 'nested/c.AGE', 'nested/d.age']


def test_rotation_isolates_failures(tree, age, alice, carol, temporary_files):
    failing = [tree / 'nested/d.age', tree / 'e.age']
    before = {path: path.read_bytes() for path in failing}

    job = RotationJob(root=tree, identities=[alice.identity], new_recipients=[carol.recipient])
    report = job.run()

    assert (report.succeeded, report.failed) == (3, 2)
    assert not report.ok
    assert [result.path for result in report.failures()] == sorted(failing)
    assert all(isinstance(result.error, DecryptError) for result in report.failures())

    for path in failing:
        assert path.read_bytes() == before[path]

    for name in ['a.env.age', 'b.json.age', 'nested/c.AGE']:
        path = tree / name
        assert path.read_bytes().startswith(ARMOR_HEADER)
        assert age.contents(path, [carol.identity]) == f"{name}\n"
        with pytest.raises(DecryptError):
            age.decrypt(path, [alice.identity])

    assert temporary_files(tree) == []
    assert temporary_files(tree / 'nested') == []


def test_rotation_with_custom_suffix(tmp_path, encrypt, alice, carol, age):
    encrypt(tmp_path / 'one.secret', "one\n")
    encrypt(tmp_path / 'two.age', "two\n")

    job = RotationJob(
        root=tmp_path, identities=[alice.identity], new_recipients=[carol.recipient], suffix='.SECRET')
    report = job.run()

    assert (report.succeeded, report.failed) == (1, 0)
    assert age.contents(tmp_path / 'one.secret', [carol.identity]) == "one\n"
    assert age.contents(tmp_path / 'two.age', [alice.identity]) == "two\n"


def test_rotation_of_nothing(tmp_path, alice, carol):
    job = RotationJob(root=tmp_path, identities=[alice.identity], new_recipients=[carol.recipient])
    report = job.run()
    assert (report.succeeded, report.failed) == (0, 0)
    assert report.ok

from datetime import date

from tasktracker.models import Completion, Task, db

WEDNESDAY = date(2024, 6, 12)
LAST_SUNDAY = date(2024, 6, 9)


def _make_task(service, user_id='alice', title='Dishes', frequency='daily'):
    category = service.create_category(user_id, f'{title} chores')
    created = service.create_task(user_id, title, frequency, category['id'])
    return db.session.get(Task, created['id'])


def _dates(task_id):
    rows = Completion.query.filter_by(task_id=task_id).all()
    return sorted(row.completed_date for row in rows)


def test_record_is_idempotent(service, ledger):
    task = _make_task(service)
    ledger.record(task, WEDNESDAY)
    ledger.record(task, WEDNESDAY)
    assert _dates(task.id) == [WEDNESDAY]


def test_record_stores_owner(service, ledger):
    task = _make_task(service, user_id='bob')
    ledger.record(task, WEDNESDAY)
    assert Completion.query.filter_by(task_id=task.id).one().user_id == 'bob'


def test_unrecord_removes_only_that_date(service, ledger):
    task = _make_task(service)
    ledger.record(task, LAST_SUNDAY)
    ledger.record(task, WEDNESDAY)
    ledger.unrecord(task.id, WEDNESDAY)
    assert _dates(task.id) == [LAST_SUNDAY]


def test_unrecord_missing_fact_is_noop(service, ledger):
    task = _make_task(service)
    ledger.unrecord(task.id, WEDNESDAY)
    assert _dates(task.id) == []


def test_facts_for_filters_owner_and_date(service, ledger):
    mine = _make_task(service, user_id='alice')
    theirs = _make_task(service, user_id='bob')
    ledger.record(mine, LAST_SUNDAY)
    ledger.record(mine, WEDNESDAY)
    ledger.record(theirs, WEDNESDAY)

    assert sorted(ledger.facts_for('alice', date(2024, 6, 10))) == [(mine.id, WEDNESDAY)]
    assert sorted(ledger.facts_for('alice', LAST_SUNDAY)) == [
        (mine.id, LAST_SUNDAY), (mine.id, WEDNESDAY),
    ]
    assert ledger.facts_for('carol', date.min) == []


def test_clear_period(service, ledger):
    task = _make_task(service)
    for day in (date(2024, 6, 1), LAST_SUNDAY, WEDNESDAY):
        ledger.record(task, day)
    assert ledger.clear_period(task.id, LAST_SUNDAY, WEDNESDAY) == 2
    assert _dates(task.id) == [date(2024, 6, 1)]


def test_sweep_removes_exactly_older_facts(service, ledger):
    first = _make_task(service, user_id='alice')
    second = _make_task(service, user_id='bob')
    ledger.record(first, date(2024, 3, 14))
    ledger.record(first, date(2024, 3, 15))
    ledger.record(second, date(2024, 1, 2))
    ledger.record(second, date(2024, 6, 1))

    assert ledger.sweep(date(2024, 3, 15)) == 2
    assert _dates(first.id) == [date(2024, 3, 15)]
    assert _dates(second.id) == [date(2024, 6, 1)]


def test_history_is_newest_first_with_titles(service, ledger):
    dishes = _make_task(service, title='Dishes')
    laundry = _make_task(service, title='Laundry')
    other = _make_task(service, user_id='bob', title='Mow')
    ledger.record(dishes, LAST_SUNDAY)
    ledger.record(laundry, WEDNESDAY)
    ledger.record(dishes, date(2024, 5, 1))
    ledger.record(other, WEDNESDAY)

    history = ledger.history('alice', date(2024, 6, 1), WEDNESDAY)
    assert [(h['task_title'], h['completed_date']) for h in history] == [
        ('Laundry', '2024-06-12'),
        ('Dishes', '2024-06-09'),
    ]


def test_deleting_task_cascades_to_facts(service, ledger):
    task = _make_task(service)
    task_id = task.id
    ledger.record(task, WEDNESDAY)
    service.delete_task('alice', task_id)
    assert _dates(task_id) == []

import logging

import pytest
from sqlalchemy.exc import OperationalError

from arena import db
from arena.models import User
from arena.services.session.identity import AccountIdentityProvider, Identity, IdentityUnavailable
from arena.services.session.stats import StatStore


def test_verify_accepts_valid_credentials(make_user):
    make_user('ace', password='pw', kills=5, deaths=1)
    identity = AccountIdentityProvider().verify({'username': 'ace', 'password': 'pw'})
    assert identity.username == 'ace'
    assert (identity.kills, identity.deaths) == (5, 1)
    assert identity.account_id is not None


@pytest.mark.parametrize('credentials', [
    None,
    {},
    {'username': 'ace'},
    {'username': 'ace', 'password': 'wrong'},
    {'username': 'nobody', 'password': 'pw'},
])
def test_verify_rejects(make_user, credentials):
    make_user('ace', password='pw')
    assert AccountIdentityProvider().verify(credentials) is None


def test_verify_reports_backend_failure(flask_app, monkeypatch):
    class BrokenQuery:
        def filter_by(self, **kwargs):
            raise OperationalError('SELECT', {}, Exception('connection refused'))

    monkeypatch.setattr(User, 'query', BrokenQuery())
    with pytest.raises(IdentityUnavailable):
        AccountIdentityProvider().verify({'username': 'ace', 'password': 'pw'})


def test_flush_writes_counters(flask_app, make_user):
    user_id = make_user('ace').id
    StatStore(flask_app).flush(Identity('ace', account_id=user_id), kills=3, deaths=2)
    db.session.expire_all()
    user = User.query.filter_by(id=user_id).first()
    assert (user.kills, user.deaths) == (3, 2)


def test_flush_skips_anonymous_players(flask_app, monkeypatch):
    store = StatStore(flask_app)
    monkeypatch.setattr(store, '_write', lambda *a: pytest.fail('anonymous stats must not be written'))
    store.flush(Identity('anon'), kills=1, deaths=1)


def test_flush_for_deleted_account_is_logged(flask_app, caplog):
    with caplog.at_level(logging.WARNING):
        StatStore(flask_app).flush(Identity('gone', account_id=999), kills=1, deaths=0)
    assert 'no longer exists' in caplog.text


def test_flush_failure_is_logged_and_rolled_back(flask_app, make_user, monkeypatch, caplog):
    user_id = make_user('ace').id

    def broken_commit():
        raise OperationalError('UPDATE', {}, Exception('disk full'))

    monkeypatch.setattr(db.session, 'commit', broken_commit)
    with caplog.at_level(logging.ERROR):
        StatStore(flask_app).flush(Identity('ace', account_id=user_id), kills=9, deaths=9)
    assert 'update failed for ace' in caplog.text

    monkeypatch.undo()
    db.session.expire_all()
    user = User.query.filter_by(id=user_id).first()
    assert (user.kills, user.deaths) == (0, 0)


def test_flush_runs_in_background_outside_tests(flask_app, monkeypatch):
    from arena import socketio

    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda fn, *args: started.append((fn, args)))
    flask_app.config['TESTING'] = False
    try:
        StatStore(flask_app).flush(Identity('ace', account_id=1), kills=1, deaths=2)
    finally:
        flask_app.config['TESTING'] = True
    assert len(started) == 1
    assert started[0][1] == (1, 'ace', 1, 2)


def test_late_flush_never_lowers_counters(flask_app, make_user):
    user_id = make_user('ace').id
    store = StatStore(flask_app)
    store.flush(Identity('ace', account_id=user_id), kills=5, deaths=2)
    store.flush(Identity('ace', account_id=user_id), kills=3, deaths=1)
    db.session.expire_all()
    user = User.query.filter_by(id=user_id).first()
    assert (user.kills, user.deaths) == (5, 2)


def test_flush_raises_only_the_counters_that_grew(flask_app, make_user):
    user_id = make_user('ace', kills=4, deaths=6).id
    StatStore(flask_app).flush(Identity('ace', account_id=user_id), kills=7, deaths=6)
    db.session.expire_all()
    user = User.query.filter_by(id=user_id).first()
    assert (user.kills, user.deaths) == (7, 6)

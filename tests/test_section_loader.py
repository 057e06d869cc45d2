import pytest

from bbsboard.article_pool import ArticlePool
from bbsboard.section_loader import (
    ArticleOp,
    ArticleRow,
    OpLogRow,
    SectionConfigRow,
    SectionLoader,
    UnknownSectionError,
)
from bbsboard.section_pool import SectionPool
from bbsboard.sections import SectionLimits


class FakeSource:
    def __init__(self):
        self.configs = []
        self.masters = {}
        self.rows = []
        self.ops = []
        self.cids = {}
        self.sids = {}

    def section_configs(self):
        return list(self.configs)

    def section_masters(self, sid):
        return self.masters.get(sid, [])

    def articles(self, start_aid, limit):
        rows = sorted((r for r in self.rows if r.aid >= start_aid), key=lambda r: r.aid)
        return rows[:limit]

    def last_op_log_mid(self):
        return max((o.mid for o in self.ops), default=None)

    def op_logs(self, after_mid, limit):
        ops = sorted((o for o in self.ops if o.mid > after_mid and o.op != "A"), key=lambda o: o.mid)
        return ops[:limit]

    def article_cid(self, aid):
        return self.cids.get(aid)

    def article_sid(self, aid):
        return self.sids.get(aid)


def make_loader():
    pool = SectionPool(ArticlePool(4, 50), SectionLimits(article_limit_per_page=20), max_section=8)
    source = FakeSource()
    source.configs = [SectionConfigRow(1, "alpha", "Alpha"), SectionConfigRow(2, "beta", "Beta")]
    return SectionLoader(pool, source), pool, source


def loaded_with_articles():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [
        ArticleRow(aid=1, sid=1, title="head"),
        ArticleRow(aid=2, sid=1, tid=1, title="reply"),
        ArticleRow(aid=3, sid=2, title="other"),
    ]
    loader.append_articles(1, False, 10)
    return loader, pool, source


def test_load_section_config_creates_sections():
    loader, pool, source = make_loader()
    source.masters = {1: ["alice", "bob", "carol", "dave"]}
    assert loader.load_section_config() == 2
    alpha = pool.find_by_name("alpha")
    assert alpha is pool.find_by_sid(1)
    assert alpha.stitle == "Alpha"
    assert alpha.master_list == "alice bob carol "
    assert pool.find_by_sid(2).master_list == ""


def test_reload_updates_existing_section():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.configs = [SectionConfigRow(1, "alpha", "Renamed", class_id=7, enable=False)]
    loader.load_section_config()
    section = pool.find_by_sid(1)
    assert len(pool) == 2
    assert section.stitle == "Renamed"
    assert section.class_id == 7
    assert section.enable is False


def test_append_articles_places_articles_in_sections():
    loader, pool, _source = loaded_with_articles()
    sec1 = pool.find_by_sid(1)
    sec2 = pool.find_by_sid(2)
    assert [a.aid for a in sec1.articles()] == [1, 2]
    assert sec1.topic_count == 1
    assert [a.aid for a in sec2.articles()] == [3]
    assert pool.article_pool.article_count() == 3


def test_append_articles_returns_count():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [ArticleRow(aid=aid, sid=1) for aid in (1, 2, 3)]
    assert loader.append_articles(1, False, 10) == len(source.rows)


def test_reply_to_hidden_topic_becomes_hidden_topic():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [
        ArticleRow(aid=1, sid=1, visible=False),
        ArticleRow(aid=2, sid=1, tid=1),
    ]
    loader.append_articles(1, False, 10)
    reply = pool.article_pool.find_by_aid(2)
    assert reply.tid == 0
    assert reply.visible is False
    assert pool.find_by_sid(1).topic_count == len(source.rows)


def test_append_respects_start_and_limit():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [ArticleRow(aid=aid, sid=1) for aid in (1, 2, 3)]
    assert loader.append_articles(2, False, 1) == 1
    assert pool.article_pool.last_aid() == 2


def test_append_unknown_section_raises_and_releases_locks():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [ArticleRow(aid=1, sid=1), ArticleRow(aid=2, sid=9)]
    with pytest.raises(UnknownSectionError) as info:
        loader.append_articles(1, False, 10)
    assert info.value.sid == 9
    sec1 = pool.find_by_sid(1)
    assert pool.locks.try_write_lock(pool.index_of(sec1), 0) is True


def test_append_with_global_lock():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [ArticleRow(aid=1, sid=1), ArticleRow(aid=2, sid=2)]
    assert loader.append_articles(1, True, 10) == len(source.rows)
    assert pool.find_by_sid(2).article_count == 1
    assert pool.locks.try_write_lock(None, 0) is True


def test_set_last_op_log_mid():
    loader, _pool, source = make_loader()
    assert loader.set_last_op_log_mid() == 0
    source.ops = [OpLogRow(3, 1, "L"), OpLogRow(8, 1, "U")]
    assert loader.set_last_op_log_mid() == 8
    assert loader.last_op_log_mid == 8


def test_delete_hides_topic_and_replies():
    loader, pool, source = loaded_with_articles()
    source.ops = [OpLogRow(1, 1, ArticleOp.DELETE.value)]
    assert loader.apply_op_log(10) == 1
    assert pool.article_pool.find_by_aid(1).visible is False
    assert pool.article_pool.find_by_aid(2).visible is False
    assert pool.find_by_sid(1).visible_article_count == 0
    assert loader.last_op_log_mid == 1


def test_restore_shows_topic_head_again():
    loader, pool, source = loaded_with_articles()
    source.ops = [OpLogRow(1, 1, "D"), OpLogRow(2, 1, "S")]
    assert loader.apply_op_log(10) == len(source.ops)
    assert pool.article_pool.find_by_aid(1).visible is True
    assert pool.article_pool.find_by_aid(2).visible is False
    assert pool.find_by_sid(1).visible_article_count == 1


def test_flag_operations():
    loader, pool, source = loaded_with_articles()
    source.ops = [OpLogRow(1, 3, "L"), OpLogRow(2, 3, "E"), OpLogRow(3, 3, "F"), OpLogRow(4, 3, "Z")]
    loader.apply_op_log(10)
    article = pool.article_pool.find_by_aid(3)
    sec2 = pool.find_by_sid(2)
    assert (article.lock, article.excerption, article.ontop, article.transship) == (True, True, True, True)
    assert sec2.ontop_articles == [article]

    source.ops += [OpLogRow(5, 3, "U"), OpLogRow(6, 3, "O"), OpLogRow(7, 3, "V")]
    loader.apply_op_log(10)
    assert (article.lock, article.excerption, article.ontop) == (False, False, False)
    assert sec2.ontop_articles == []
    assert loader.last_op_log_mid == 7


def test_modify_updates_cid_and_clears_excerption():
    loader, pool, source = loaded_with_articles()
    article = pool.article_pool.find_by_aid(1)
    article.excerption = True
    source.cids = {1: 42}
    source.ops = [OpLogRow(1, 1, "M")]
    assert loader.apply_op_log(10) == 1
    assert article.cid == 42
    assert article.excerption is False


def test_modify_of_missing_content_stops():
    loader, pool, source = loaded_with_articles()
    source.ops = [OpLogRow(1, 1, "M"), OpLogRow(2, 1, "L")]
    assert loader.apply_op_log(10) == 0
    assert pool.article_pool.find_by_aid(1).cid == 0
    assert pool.article_pool.find_by_aid(1).lock is False
    assert loader.last_op_log_mid == 0


def test_move_topic_operation():
    loader, pool, source = loaded_with_articles()
    source.sids = {1: 2}
    source.ops = [OpLogRow(1, 1, "T")]
    assert loader.apply_op_log(10) == 1
    sec1 = pool.find_by_sid(1)
    sec2 = pool.find_by_sid(2)
    assert sec1.article_count == 0
    assert [a.aid for a in sec2.articles()] == [1, 2, 3]
    assert pool.article_pool.find_by_aid(2).sid == 2


def test_move_to_unknown_section_raises():
    loader, _pool, source = loaded_with_articles()
    source.sids = {1: 9}
    source.ops = [OpLogRow(1, 1, "T")]
    with pytest.raises(UnknownSectionError):
        loader.apply_op_log(10)
    assert loader.last_op_log_mid == 0


def test_operation_on_unloaded_article_stops():
    loader, _pool, source = loaded_with_articles()
    source.ops = [OpLogRow(1, 99, "L"), OpLogRow(2, 1, "L")]
    assert loader.apply_op_log(10) == 0
    assert loader.last_op_log_mid == 0


def test_unknown_operation_type_is_skipped():
    loader, _pool, source = loaded_with_articles()
    source.ops = [OpLogRow(5, 1, "Q")]
    assert loader.apply_op_log(10) == 1
    assert loader.last_op_log_mid == 5


def test_run_once_loads_in_batches():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [ArticleRow(aid=aid, sid=1) for aid in range(1, 6)]
    source.ops = [OpLogRow(1, 2, "L")]
    assert loader.run_once(2) == (len(source.rows), len(source.ops))
    assert pool.article_pool.find_by_aid(2).lock is True


def test_run_once_reloads_config_after_unknown_section():
    loader, pool, source = make_loader()
    loader.load_section_config()
    source.rows = [ArticleRow(aid=1, sid=1), ArticleRow(aid=2, sid=3)]
    assert loader.run_once(10) == (1, 0)
    assert loader.conf_reload is True

    source.configs.append(SectionConfigRow(3, "gamma", "Gamma"))
    assert loader.run_once(10) == (1, 0)
    assert loader.conf_reload is False
    assert [a.aid for a in pool.find_by_sid(3).articles()] == [2]
# bbsboard

The in-memory core of a terminal bulletin board system. It keeps boards (sections) and
their articles in ascending article id order, links replies into topic threads, splits
each board into pages of visible articles, and pins articles after the last page.

## Modules

- `bbsboard.trie_dict`: `TrieDict`, a dictionary from non-empty byte strings (or
  strings, stored as UTF-8) to integers. Its nodes come from a bounded `TrieNodePool`,
  which raises `TrieExhaustedError` when it runs out. Empty or `None` keys raise
  `TrieKeyError`. `items()` yields keys in byte order.
- `bbsboard.str_process`: measures terminal text on its UTF-8 bytes. Multi-byte
  characters take two columns, and `\r` and bell take none. With `skip_ctrl_seq`,
  `ESC [ ... m` colour sequences take none either.
  - `str_length` gives the width of a text.
  - `split_line` returns a `LineSplit` with the byte length, an end-of-line flag and the
    display width.
  - `split_data_lines` returns line offsets and widths.
  - `str_filter` strips the characters that take no columns.
- `bbsboard.user_priv`: `UserPriv` holds a global `SectionPriv` and per-section
  overrides with favourite marks, plus a `UserLevel`. It has `setpriv`, `getpriv` and
  `checkpriv`. `load_priv(conn, uid, max_section)` builds it from a DB-API connection
  that uses the `%s` parameter style. Called with `conn=None`, it returns the defaults.
- `bbsboard.locks`: `SectionLockTable` keeps a reader/writer lock for each section and
  one slot that stands for all sections. It has the `read()` and `write()` context
  managers, which raise `LockTimeout`, and `try_*` and `*_unlock` methods.
- `bbsboard.article_pool`: `Article` and `ArticlePool`, a bounded store of articles
  that requires strictly ascending aids. Lookup by aid uses binary search. When the
  store cannot take an article it raises `ArticlePoolError`.
- `bbsboard.sections`: `Section` handles one board.
  - Articles are appended with `append_article`, shown or hidden with
    `set_article_visible`, and pinned or unpinned with `update_article_ontop`.
  - `calculate_page` rebuilds the pages. `find_article_with_offset` locates an article.
  - `page_count_with_ontop` and `page_article_count_with_ontop` count pages and entries
    with pinned articles included.
  - `SectionLimits` holds the size limits. Failures raise `SectionError`.
- `bbsboard.section_pool`: `SectionPool` holds all boards. They share one article pool.
  It finds a board by name or by sid, and `read_lock` and `write_lock` hold a board's
  lock.
- `bbsboard.topic_move`: `move_topic(src, dest, aid)` moves a whole topic to another
  board and rebuilds the pages of both boards.
- `bbsboard.section_query`: `query_section_articles` returns a `PageQuery` with the
  entries of one page. `locate_article_in_section` finds an earlier or later article of
  the same topic and returns its `ArticleLocation`.
- `bbsboard.section_loader`: `SectionLoader` reads from a source object that you
  supply. The method it expects are listed in the module docstring.
  - It creates or updates boards with `load_section_config`.
  - It appends new articles with `append_articles`.
  - It replays the article operation log (`ArticleOp`) with `apply_op_log`.
  - `run_once` does both in one round.
  - When data refers to a board that is not loaded, it raises `UnknownSectionError`.
- `bbsboard.money`: `Wallet` handles a user's game money in the `user_pubinfo` table.
  It works through a connection factory. It has `deposit`, which is capped at one
  billion and raises `BalanceLimitError` when the balance is already at the cap. It has
  `withdraw`, which raises `InsufficientFundsError`, and `refresh`.

## Example

```python
from bbsboard.article_pool import Article, ArticlePool
from bbsboard.section_pool import SectionPool
from bbsboard.section_query import query_section_articles
from bbsboard.sections import SectionLimits

articles = ArticlePool(block_count=10, articles_per_block=100)
boards = SectionPool(articles, SectionLimits(), max_section=10, trie_pool=None)
board = boards.create(1, "Test", "Test board", "")

board.append_article(Article(aid=1, tid=0, sid=1, title="Hello", visible=True))
board.append_article(Article(aid=2, tid=1, sid=1, title="Re: Hello", visible=True))

page = query_section_articles(boards, board, 0)
print(board.page_count_with_ontop(), [a.aid for a in page.articles])  # 1 [1, 2]
```

## What it does not do

This package has no terminal screen, no network server and no command to run. It does
not store article bodies or cache rendered articles. `SectionLoader` comes with no
database source: the source object is yours to write. `load_priv` and `Wallet` only
issue SQL through the DB-API connection you hand them. All board and article state
lives in the memory of one process.

## Running the tests

```
pip install -e .[test]
pytest
```
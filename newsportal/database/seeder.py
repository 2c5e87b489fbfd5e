"""
Sample data for a fresh News Portal store.
"""

import logging
from typing import List, Optional

from newsportal.models.article import Article

from .pool import ConnectionPool


logger = logging.getLogger(__name__)


SAMPLE_ARTICLES: List[Article] = [
    Article(
        title="দেশের নতুন অর্থনীতি নীতি",
        content="বাংলাদেশ সরকার নতুন অর্থনীতি নীতি ঘোষণা করেছে যা দেশের উন্নয়নে গুরুত্বপূর্ণ ভূমিকা রাখবে।",
        category="জাতীয়",
        author="সিনিয়র রিপোর্টার",
        featured=True,
    ),
    Article(
        title="ক্রিকেট চ্যাম্পিয়নশিপে বাংলাদেশের জয়",
        content="বাংলাদেশ ক্রিকেট দল আন্তর্জাতিক চ্যাম্পিয়নশিপে দারুণ পারফরম্যান্স দেখিয়েছে।",
        category="খেলাধুলা",
        author="স্পোর্টস এডিটর",
        featured=False,
    ),
    Article(
        title="কৃত্রিম বুদ্ধিমত্তার নতুন উদ্ভাবন",
        content="বিশ্বব্যাপী কৃত্রিম বুদ্ধিমত্তার ক্ষেত্রে নতুন উদ্ভাবনী প্রযুক্তি আবিষ্কৃত হয়েছে।",
        category="প্রযুক্তি",
        author="টেক করেসপন্ডেন্ট",
        featured=True,
    ),
    Article(
        title="স্বাস্থ্যসেবায় নতুন মাত্রা",
        content="দেশে স্বাস্থ্যসেবা খাতে যুগান্তকারী পরিবর্তন আসতে চলেছে যা সাধারণ মানুষের জীবনযাত্রার মান উন্নত করবে।",
        category="স্বাস্থ্য",
        author="হেলথ করেসপন্ডেন্ট",
        featured=False,
    ),
]


async def seed_sample_articles(
    pool: ConnectionPool,
    timeout: Optional[float] = 10.0,
    articles: Optional[List[Article]] = None
) -> int:
    """
    Insert sample articles if the articles table is empty.

    Args:
        pool: Published connection pool
        timeout: Deadline for each statement
        articles: Articles to insert (defaults to SAMPLE_ARTICLES)

    Returns:
        Number of articles inserted (0 when the table already had rows or
        could not be read)
    """
    articles = SAMPLE_ARTICLES if articles is None else articles

    try:
        count = await pool.fetchval("SELECT COUNT(*) FROM articles", timeout=timeout)
    except Exception as e:
        logger.warning(f"Warning: Could not check articles table, skipping sample data: {e!r}")
        return 0
    if count:
        return 0

    columns = ", ".join(Article.INSERT_COLUMNS)
    query = (
        f"INSERT INTO articles ({columns}) "
        f"VALUES ({pool.dialect.placeholders(len(Article.INSERT_COLUMNS))})"
    )

    inserted = 0
    for article in articles:
        try:
            await pool.execute(query, *article.insert_values(), timeout=timeout)
            inserted += 1
        except Exception as e:
            logger.warning(f"Warning: Error inserting article {article.title!r}: {e!r}")

    logger.info(f"✅ Sample data initialized ({inserted}/{len(articles)} articles)")
    return inserted

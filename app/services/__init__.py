# Services package.
#
#   article_service  — ArticleService: cache-aside reads and invalidating
#                      writes for Article, with ownership checks
#   auth_service     — password hashing, JWT issue/verify, register/login
#   user_service     — User lookups and creation
#
# Write methods commit before invalidating the cache; ``get_db`` commits
# or rolls back whatever else the request did.

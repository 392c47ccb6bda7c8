# This module handles memory for the orchestrator

# +---------------------+      +---------------------+
# |    Experiences      |      | Knowledge documents |
# |---------------------|      |---------------------|
# | Action taken        |      | Title, category     |
# | Outcome             |      | Tags                |
# | Importance          |      | Content             |
# +---------------------+      +---------------------+
#          \                        /
#           \                      /
#            v                    v
# +--------------------------------------+
# |            Memory gateway            |
# |--------------------------------------|
# | Recent episodes (newest first)       |
# | Documents ranked against objective   |
# +--------------------------------------+
#                   |
#                   v
#       [learning summary in run report]

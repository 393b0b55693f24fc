# Capabilities the engine draws on when no rule decides for it

# +---------------------+      +---------------------+
# |      Memory         |      |      Prompts        |
# |---------------------|      |---------------------|
# | Outcomes, facts     |      | Named templates     |
# | Embeddings          |      | {placeholder} fill  |
# +---------------------+      +---------------------+
#           \                          /
#            \                        /
#             v                      v
#          +----------------------------+
#          |       Language model       |
#          |----------------------------|
#          | generate(prompt) -> text   |
#          | embed(text) -> vector      |
#          +----------------------------+
#                        |
#                        v
#           [fallback handler / tools]

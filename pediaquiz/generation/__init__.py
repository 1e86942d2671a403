"""
Content Generation Pipeline
pediaquiz/generation/

Steps:
1. Job Machine       : status transitions, compare-and-set claim per stage
2. Classifier        : extracted text + taxonomy → topic/chapter/count suggestion
3. Content Generator : confirmed counts → staged MCQ/flashcard drafts (batched)
4. Approval Gate     : edited drafts → atomic publish into the question bank
5. Weakness Assembler: attempt history → practice test of weakest chapters
6. Explanations      : read-through cache of AI explanations per MCQ
"""

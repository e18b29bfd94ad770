"""
Transformer Span Model
- (sentiment, tweet) pairs encoded with offset mappings
- AutoModel backbone + 2-logit head (start / end)
- Mixed Precision (AMP), gradient accumulation, linear warmup
- Candidate scoring: joint start/end probability at the span's first and last tokens
"""

import os

import numpy as np
import pandas as pd
import torch
import torch.nn as nn
import torch.nn.functional as F
from torch.amp import GradScaler, autocast
from torch.optim import AdamW
from torch.utils.data import DataLoader, Dataset
from tqdm import tqdm
from transformers import AutoModel, AutoTokenizer, get_linear_schedule_with_warmup

from kaggle_reports.config import MAX_LENGTH, MODEL_DIR, TRANSFORMER_NAME
from kaggle_reports.spans import mean_jaccard


def find_char_span(text, selected):
    """Character (start, end) of selected inside text; whole text when not found."""
    if selected and selected in text:
        start = text.find(selected)
        return start, start + len(selected)
    stripped = (selected or '').strip()
    if stripped and stripped in text:
        start = text.find(stripped)
        return start, start + len(stripped)
    return 0, len(text)


def char_span_to_tokens(offsets, sequence_ids, char_start, char_end):
    """
    Map a character span onto context token indices.

    Args:
        offsets: Per-token (start, end) character offsets
        sequence_ids: Per-token sequence id (1 = the tweet)
        char_start, char_end: Character span in the tweet

    Returns:
        (start_token, end_token); (0, 0) when the span falls outside the context
    """
    context = [i for i, sid in enumerate(sequence_ids) if sid == 1]
    if not context:
        return 0, 0
    first, last = context[0], context[-1]
    if offsets[first][0] > char_end or offsets[last][1] < char_start:
        return 0, 0

    start = first
    while start <= last and offsets[start][1] <= char_start:
        start += 1
    end = last
    while end >= first and offsets[end][0] >= char_end:
        end -= 1
    if start > last or end < first or end < start:
        return 0, 0
    return start, end


def token_at(offsets, sequence_ids, char_pos):
    """Index of the context token covering char_pos (nearest context token otherwise)."""
    context = [i for i, sid in enumerate(sequence_ids) if sid == 1]
    if not context:
        return 0
    for i in context:
        start, end = offsets[i]
        if start <= char_pos < end:
            return i
    following = [i for i in context if offsets[i][0] >= char_pos]
    return following[0] if following else context[-1]


class SpanDataset(Dataset):
    """PyTorch Dataset of (sentiment, text) pairs with optional start/end targets."""

    def __init__(self, texts, sentiments, tokenizer, selected=None, max_length=MAX_LENGTH):
        self.texts = list(texts)
        self.sentiments = list(sentiments)
        self.selected = list(selected) if selected is not None else None
        self.tokenizer = tokenizer
        self.max_length = max_length

    def __len__(self):
        return len(self.texts)

    def __getitem__(self, idx):
        text = self.texts[idx]
        encoding = self.tokenizer(
            self.sentiments[idx],
            text,
            max_length=self.max_length,
            padding='max_length',
            truncation='only_second',
            return_offsets_mapping=True,
        )
        item = {
            'input_ids': torch.tensor(encoding['input_ids'], dtype=torch.long),
            'attention_mask': torch.tensor(encoding['attention_mask'], dtype=torch.long),
        }
        if self.selected is not None:
            char_start, char_end = find_char_span(text, self.selected[idx])
            start, end = char_span_to_tokens(
                encoding['offset_mapping'], encoding.sequence_ids(), char_start, char_end
            )
            item['start_position'] = torch.tensor(start, dtype=torch.long)
            item['end_position'] = torch.tensor(end, dtype=torch.long)
        return item


class SpanExtractor(nn.Module):
    """Transformer backbone with a start/end logit head."""

    def __init__(self, model_name=TRANSFORMER_NAME, dropout=0.1):
        super().__init__()
        self.backbone = AutoModel.from_pretrained(model_name)
        self.dropout = nn.Dropout(dropout)
        self.head = nn.Linear(self.backbone.config.hidden_size, 2)
        self.model_name = model_name

    def forward(self, input_ids, attention_mask):
        outputs = self.backbone(input_ids=input_ids, attention_mask=attention_mask)
        logits = self.head(self.dropout(outputs.last_hidden_state))
        start_logits, end_logits = logits.split(1, dim=-1)
        return start_logits.squeeze(-1), end_logits.squeeze(-1)


def span_loss(start_logits, end_logits, start_positions, end_positions):
    return (F.cross_entropy(start_logits, start_positions)
            + F.cross_entropy(end_logits, end_positions)) / 2


def decode_span(text, offsets, sequence_ids, start_logits, end_logits, max_tokens=None):
    """Best (start <= end) context token pair -> substring of text."""
    context = [i for i, sid in enumerate(sequence_ids) if sid == 1]
    if not context:
        return text
    best_score, best_pair = -np.inf, (context[0], context[0])
    for i in context:
        for j in context:
            if j < i or (max_tokens is not None and j - i + 1 > max_tokens):
                continue
            score = start_logits[i] + end_logits[j]
            if score > best_score:
                best_score, best_pair = score, (i, j)
    char_start, char_end = offsets[best_pair[0]][0], offsets[best_pair[1]][1]
    span = text[char_start:char_end].strip()
    return span if span else text


def normalize_per_source(scores, source_ids):
    """Divide each score by the best score of its source text (best becomes 1)."""
    scores = pd.Series(np.asarray(scores, dtype=float))
    best = scores.groupby(np.asarray(source_ids)).transform('max')
    return np.where(best > 0, scores / best.where(best > 0, 1.0), 0.0)


def load_span_extractor(model_path, device='cpu'):
    """Load a checkpoint written by train_span_extractor."""
    checkpoint = torch.load(model_path, map_location=device, weights_only=False)
    model = SpanExtractor(model_name=checkpoint['model_name'])
    model.load_state_dict(checkpoint['model_state_dict'])
    model.to(device)
    model.eval()
    return model, checkpoint


def predict_logits(model, texts, sentiments, tokenizer, device, batch_size=32,
                   max_length=MAX_LENGTH):
    """Start/end log-probabilities per text, with offsets and sequence ids."""
    use_amp = device.type == 'cuda'
    results = []
    model.eval()
    texts, sentiments = list(texts), list(sentiments)

    with torch.no_grad():
        for begin in range(0, len(texts), batch_size):
            batch_texts = texts[begin:begin + batch_size]
            batch_sentiments = sentiments[begin:begin + batch_size]
            encoding = tokenizer(
                batch_sentiments,
                batch_texts,
                max_length=max_length,
                padding='max_length',
                truncation='only_second',
                return_offsets_mapping=True,
                return_tensors='pt',
            )
            input_ids = encoding['input_ids'].to(device)
            attention_mask = encoding['attention_mask'].to(device)
            with autocast('cuda', enabled=use_amp):
                start_logits, end_logits = model(input_ids, attention_mask)
            start_lp = F.log_softmax(start_logits.float(), dim=-1).cpu().numpy()
            end_lp = F.log_softmax(end_logits.float(), dim=-1).cpu().numpy()
            offsets = encoding['offset_mapping'].tolist()
            for k in range(len(batch_texts)):
                results.append({
                    'offsets': offsets[k],
                    'sequence_ids': encoding.sequence_ids(k),
                    'start': start_lp[k],
                    'end': end_lp[k],
                })
    return results


class TransformerCandidateScorer:
    """
    Candidate scorer backed by a start/end span model.

    predict() takes the candidate frame (needs source_id, text, sentiment,
    char_start, char_end) and scores each candidate as
    exp(start_logprob[first token] + end_logprob[last token]). The joint
    probability is spread over every token pair, so scores are divided by
    the best candidate of the same tweet; the top candidate scores 1.
    """

    def __init__(self, model, tokenizer, device=None, batch_size=32):
        self.model = model
        self.tokenizer = tokenizer
        self.device = device or torch.device('cuda' if torch.cuda.is_available() else 'cpu')
        self.batch_size = batch_size

    @classmethod
    def from_checkpoint(cls, model_path, device=None):
        device = device or torch.device('cuda' if torch.cuda.is_available() else 'cpu')
        model, checkpoint = load_span_extractor(model_path, device)
        tokenizer = AutoTokenizer.from_pretrained(checkpoint['model_name'])
        return cls(model, tokenizer, device=device)

    def predict(self, candidates):
        sources = candidates.drop_duplicates('source_id')[['source_id', 'text', 'sentiment']]
        logits = predict_logits(
            self.model,
            sources['text'],
            sources['sentiment'].fillna('neutral'),
            self.tokenizer,
            self.device,
            batch_size=self.batch_size,
        )
        by_source = dict(zip(sources['source_id'], logits))

        scores = np.empty(len(candidates))
        for k, row in enumerate(candidates[['source_id', 'char_start', 'char_end']].itertuples(index=False)):
            out = by_source[row.source_id]
            first = token_at(out['offsets'], out['sequence_ids'], row.char_start)
            last = token_at(out['offsets'], out['sequence_ids'], max(row.char_end - 1, row.char_start))
            scores[k] = np.exp(out['start'][first] + out['end'][last])
        return normalize_per_source(scores, candidates['source_id'])


def train_span_extractor(train_frame, val_frame, model_name=TRANSFORMER_NAME, epochs=3,
                         batch_size=32, learning_rate=3e-5, gradient_accumulation_steps=1,
                         model_path=None):
    """
    Fine-tune the span model on (text, sentiment, selected_text) rows.

    Args:
        train_frame, val_frame: DataFrames with text, sentiment, selected_text
        model_name: Hugging Face backbone
        epochs: Number of training epochs
        batch_size: Batch size (effective = batch_size * grad_accum)
        learning_rate: Learning rate for optimizer
        gradient_accumulation_steps: Steps to accumulate gradients
        model_path: Checkpoint path; best validation Jaccard is kept

    Returns:
        (model, tokenizer, best_val_jaccard)
    """
    print("=" * 60)
    print(f"TRAINING SPAN MODEL ({model_name})")
    print("=" * 60)

    if model_path is None:
        model_path = os.path.join(MODEL_DIR, 'span_transformer.pth')

    print("\n[1/5] Creating datasets and dataloaders...")
    tokenizer = AutoTokenizer.from_pretrained(model_name)
    train_dataset = SpanDataset(
        train_frame['text'], train_frame['sentiment'], tokenizer,
        selected=train_frame['selected_text'],
    )
    train_loader = DataLoader(train_dataset, batch_size=batch_size, shuffle=True)
    print(f"✅ Train size: {len(train_dataset)}, Val size: {len(val_frame)}")

    print("\n[2/5] Initializing model...")
    device = torch.device('cuda' if torch.cuda.is_available() else 'cpu')
    model = SpanExtractor(model_name=model_name)
    model.to(device)
    print(f"Device: {device}")
    if not torch.cuda.is_available():
        print("⚠️ WARNING: Training on CPU will be VERY slow!")

    print("\n[3/5] Setting up optimizer and scheduler...")
    optimizer = AdamW(model.parameters(), lr=learning_rate, weight_decay=0.01)
    num_training_steps = max(1, (len(train_loader) // gradient_accumulation_steps) * epochs)
    num_warmup_steps = int(num_training_steps * 0.1)
    scheduler = get_linear_schedule_with_warmup(optimizer, num_warmup_steps, num_training_steps)

    use_amp = torch.cuda.is_available()
    amp_scaler = GradScaler('cuda', enabled=use_amp)
    print(f"✅ Mixed Precision (AMP): {'Enabled' if use_amp else 'Disabled'}")

    print("\n[4/5] Starting training...")
    best_val_jaccard = -1.0

    for epoch in range(epochs):
        print(f"\nEpoch {epoch + 1}/{epochs}")
        model.train()
        train_loss = 0
        optimizer.zero_grad()
        progress_bar = tqdm(train_loader, desc='Training')

        for step, batch in enumerate(progress_bar):
            input_ids = batch['input_ids'].to(device)
            attention_mask = batch['attention_mask'].to(device)
            start_positions = batch['start_position'].to(device)
            end_positions = batch['end_position'].to(device)

            with autocast('cuda', enabled=use_amp):
                start_logits, end_logits = model(input_ids, attention_mask)
                loss = span_loss(start_logits.float(), end_logits.float(),
                                 start_positions, end_positions)
                loss = loss / gradient_accumulation_steps

            amp_scaler.scale(loss).backward()

            if (step + 1) % gradient_accumulation_steps == 0:
                amp_scaler.unscale_(optimizer)
                torch.nn.utils.clip_grad_norm_(model.parameters(), 1.0)
                amp_scaler.step(optimizer)
                amp_scaler.update()
                optimizer.zero_grad()
                scheduler.step()

            train_loss += loss.item() * gradient_accumulation_steps
            progress_bar.set_postfix({'loss': f'{loss.item() * gradient_accumulation_steps:.4f}'})

        outputs = predict_logits(model, val_frame['text'], val_frame['sentiment'],
                                 tokenizer, device, batch_size=batch_size)
        predictions = [
            decode_span(text, out['offsets'], out['sequence_ids'], out['start'], out['end'])
            for text, out in zip(val_frame['text'], outputs)
        ]
        val_jaccard = mean_jaccard(val_frame['selected_text'], predictions)

        print(f"  Train loss: {train_loss / max(len(train_loader), 1):.4f}")
        print(f"  Val Jaccard: {val_jaccard:.4f}")

        if val_jaccard > best_val_jaccard:
            best_val_jaccard = val_jaccard
            os.makedirs(os.path.dirname(model_path) or '.', exist_ok=True)
            torch.save({
                'epoch': epoch,
                'model_state_dict': model.state_dict(),
                'model_name': model_name,
                'val_jaccard': val_jaccard,
            }, model_path)
            print(f"  ✅ Model saved! Best val Jaccard: {best_val_jaccard:.4f}")

    print("\n[5/5] Training complete!")
    print(f"Best Val Jaccard: {best_val_jaccard:.4f}")
    print(f"Model saved: {model_path}")

    return model, tokenizer, best_val_jaccard

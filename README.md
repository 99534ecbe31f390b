# charmlp

A small reverse-mode automatic differentiation engine built on NumPy, and a
character-level multilayer perceptron that learns from a list of names and
then invents new ones.

The network looks at the previous few characters of a name, embeds each of
them through a lookup table, passes the result through a tanh hidden layer
and predicts the next character with a softmax. The character `.` marks the
end of a name and pads the context before its start.

## Installation

```
pip install .
```

## Command line

Train on a file with one lower-case name per line and print generated names:

```
charmlp names.txt
```

The file argument defaults to `names.txt`. Options:

- `--iterations` number of training steps (default 10000)
- `--context` characters of context per prediction (default 4)
- `--embedding` size of each character embedding (default 32)
- `--hidden` size of the hidden layer (default 128)
- `--batch` examples per training step (default 32)
- `--learning-rate` step size (default 0.01, halved for the second half of training)
- `--seed` random seed (default 1)
- `--count` how many names to print after training; without it, names are
  printed until the program is stopped

Every 100 steps the command prints progress, the average step time in
milliseconds and the current loss. A missing file or a character outside
`.` and `a`–`z` is reported on standard error with exit status 1.

## Library

Two graph styles are provided.

`charmlp.autograd` builds a fresh graph for every step. Each operation on a
`Node` (`add`, `multiply`, `dot_product`, `tanh`) returns a new `Node` and
records how to send gradients back:

```python
import numpy as np
from charmlp.autograd import CompGraph, Node
from charmlp.shaping import average_columns

graph = CompGraph()
weights = Node(3, 2, randomise=True, parameter=True, rng=np.random.default_rng(1))
inputs = Node(4, 3, randomise=True, parameter=False, rng=np.random.default_rng(2))

hidden = inputs.dot_product(weights, graph).tanh(graph)
loss = average_columns(hidden, graph)
loss.backwards(graph)
print(weights)          # values; gradients are in weights.gradients
graph.cleanup()         # zeroes gradients and forgets the recorded nodes
```

`charmlp.shaping` adds `get_node`, `get_row_node`, `get_column_node`,
`concat_horizontally`, `concat_vertically`, `concat_nodes`,
`average_columns`, `average_rows` and a softmax `cross_entropy_loss` for
these nodes.

`charmlp.static_graph` builds the graph once out of resizable `Matrix`
objects and reruns it with `Graph.forward_pass()` and
`Graph.backward_pass()`, using `embed`, `dot_product`, `add_vector`,
`tanh_operation`, `cross_entropy_loss` and `average`.

The ready-made models are `charmlp.mlp.DynamicMLP` and
`charmlp.static_mlp.StaticMLP`, both configured with
`charmlp.mlp.Hyperparameters`. Each has `train_step(batch, learning_rate)`,
which returns the mean loss, and `next_probabilities(context)`;
`StaticMLP` needs `set_generation_mode()` before sampling.
`charmlp.cli.generate_names` samples names from either model.

Data helpers such as `load_words`, `encode_words`, `build_examples`,
`softmax` and `pick_index` live in `charmlp.names`, and `encode_char` /
`decode_char` in `charmlp.encoding` map characters to indices, raising
`EncodingError` for characters or indices outside the alphabet.

## What it does not do

Everything runs on the CPU through NumPy. Trained weights are not saved:
the command trains from scratch each time it is run, and the models offer
no way to write their parameters to disk or read them back.

## Tests

```
pip install .[test]
pytest
```
'''
Rules are callables receiving the decoded data (and the buffer) and returning
False if everything is fine, otherwise a message describing the problem.

    schema.add_rule(rules.equal('magic', 0x12657832))
'''


def _operand(value, data):
    '''A string is the name of a field of the data, anything else a literal.'''
    if isinstance(value, str):
        return data.get(value)

    return value


def equal(a, b):
    def rule(data, buffer):
        value_a = _operand(a, data)
        value_b = _operand(b, data)

        if value_a != value_b:
            return f'"{value_a}" is not equal to "{value_b}"'

        return False

    return rule
